# ==============================================
# Tests for Sink Writer Module
# ==============================================
#
# Writer runs against the in-memory fake (see conftest.py).
# Backoff delays are collected into no_sleep instead of slept.
#
# ==============================================

import pytest
from thriftpy2.thrift import TApplicationException

from hbase_connector.errors import RoutingError, RowKeyError, SinkWriteError
from hbase_connector.sink import HBaseSinkWriter, SinkState


def records(count, **extra):
    return [{"name": f"r{i:03d}", "c_int": i, **extra} for i in range(count)]


@pytest.fixture
def make_writer(client, make_sink_config, no_sleep):
    writers = []

    def factory(**overrides):
        writer = HBaseSinkWriter(client, make_sink_config(**overrides), sleep=no_sleep.append)
        writers.append(writer)
        return writer

    yield factory
    for writer in writers:
        writer._pool.shutdown(wait=True)


class TestWrite:
    def test_writes_every_record(self, make_writer, fake_hbase):
        writer = make_writer()
        result = writer.write(records(5))
        assert result.records_received == 5
        assert result.records_written == 5
        assert result.tables == {"seatunnel_test": 5}
        assert sorted(fake_hbase.rows("seatunnel_test")) == [f"r{i:03d}".encode() for i in range(5)]
        assert writer.state == SinkState.IDLE

    def test_accepts_generator(self, make_writer, fake_hbase):
        writer = make_writer()
        writer.write(record for record in records(3))
        assert len(fake_hbase.rows("seatunnel_test")) == 3

    def test_same_key_last_write_wins(self, make_writer, fake_hbase):
        writer = make_writer()
        writer.write([{"name": "A", "c_string": "first"}, {"name": "A", "c_string": "second"}])
        assert fake_hbase.rows("seatunnel_test")[b"A"][b"info:c_string"] == b"second"

    def test_empty_input(self, make_writer, fake_hbase):
        writer = make_writer()
        result = writer.write([])
        assert result.records_written == 0
        assert fake_hbase.put_calls == 0

    def test_wal_flag_passed_through(self, make_writer, fake_hbase):
        writer = make_writer(wal=False)
        writer.write(records(1))
        assert fake_hbase.wal_flags == [False]

    def test_creates_missing_table(self, make_writer, fake_hbase):
        writer = make_writer(table="brand_new", create_tables=True)
        writer.write(records(2))
        assert fake_hbase.families["brand_new"] == {"info"}
        assert len(fake_hbase.rows("brand_new")) == 2


class TestBatching:
    def test_flush_on_size(self, make_writer, fake_hbase):
        writer = make_writer(batch={"batch_size": 2, "batch_timeout_seconds": 60})
        writer.write_one(records(1)[0])
        assert fake_hbase.put_calls == 0
        assert writer.state == SinkState.ACCUMULATING
        writer.write_one({"name": "x1"})
        assert fake_hbase.put_calls == 1
        assert writer.pending_rows == 0

    def test_flush_on_age(self, make_writer, fake_hbase):
        writer = make_writer(batch={"batch_size": 100, "batch_timeout_seconds": 0})
        writer.write_one({"name": "A"})
        assert len(fake_hbase.rows("seatunnel_test")) == 1

    def test_write_puts_at_most_batch_size_rows(self, make_writer, client, monkeypatch):
        sizes = []
        put_batch = client.put_batch

        def recording(table, rows, wal=True):
            sizes.append(len(rows))
            return put_batch(table, rows, wal=wal)

        monkeypatch.setattr(client, "put_batch", recording)
        writer = make_writer(batch={"batch_size": 2, "batch_timeout_seconds": 60})
        result = writer.write(records(10))
        assert result.records_written == 10
        assert sum(sizes) == 10
        assert max(sizes) <= 2

    def test_oversized_batch_split_into_puts(self, make_writer, client, monkeypatch):
        sizes = []
        put_batch = client.put_batch

        def recording(table, rows, wal=True):
            sizes.append(len(rows))
            return put_batch(table, rows, wal=wal)

        monkeypatch.setattr(client, "put_batch", recording)
        writer = make_writer(batch={"batch_size": 2, "batch_timeout_seconds": 60})
        batch = writer._batch_for("seatunnel_test")
        for record in records(5):
            batch.append(writer._mapper.to_cells(record))
        result = writer.flush()
        assert sizes == [2, 2, 1]
        assert result.tables == {"seatunnel_test": 5}

    def test_write_flushes_aged_rows_while_streaming(self, make_writer, fake_hbase):
        """With a zero timeout each row is stored before the next record is pulled."""
        writer = make_writer(batch={"batch_size": 100, "batch_timeout_seconds": 0})
        stored_before_next = []

        def stream():
            yield {"name": "A"}
            stored_before_next.append(len(fake_hbase.rows("seatunnel_test")))
            yield {"name": "B"}

        result = writer.write(stream())
        assert stored_before_next == [1]
        assert result.records_written == 2

    def test_close_flushes_pending(self, make_writer, fake_hbase):
        writer = make_writer()
        writer.write_one({"name": "A"})
        assert len(fake_hbase.rows("seatunnel_test")) == 0
        result = writer.close()
        assert result.records_written == 1
        assert writer.state == SinkState.CLOSED

    def test_write_after_close_rejected(self, make_writer):
        writer = make_writer()
        writer.close()
        with pytest.raises(SinkWriteError):
            writer.write_one({"name": "A"})


class TestRetry:
    def test_transient_failure_retried(self, make_writer, fake_hbase, no_sleep):
        fake_hbase.put_failures = 2
        writer = make_writer(retry={"max_attempts": 3, "initial_backoff_seconds": 0.01})
        result = writer.write(records(3))
        assert result.records_written == 3
        assert fake_hbase.put_calls == 3
        assert no_sleep == [0.01, 0.02]

    def test_retry_budget_exhausted(self, make_writer, fake_hbase):
        fake_hbase.put_failures = 10
        writer = make_writer(retry={"max_attempts": 3, "initial_backoff_seconds": 0.01})
        with pytest.raises(SinkWriteError) as exc:
            writer.write(records(4))
        assert exc.value.table == "seatunnel_test"
        assert exc.value.failed_count == 4
        assert fake_hbase.put_calls == 3
        assert writer.state == SinkState.FAILED

    def test_failed_writer_rejects_writes(self, make_writer, fake_hbase):
        fake_hbase.put_failures = 10
        writer = make_writer(retry={"max_attempts": 1})
        with pytest.raises(SinkWriteError):
            writer.write(records(1))
        with pytest.raises(SinkWriteError):
            writer.write(records(1))

    def test_non_retryable_failure_not_retried(self, make_writer, fake_hbase, no_sleep):
        fake_hbase.put_failures = 1
        fake_hbase.put_failure = lambda: TApplicationException(message="IllegalArgumentException")
        writer = make_writer()
        with pytest.raises(SinkWriteError):
            writer.write(records(1))
        assert fake_hbase.put_calls == 1
        assert no_sleep == []

    def test_missing_table_fails_without_create(self, make_writer):
        writer = make_writer(table="does_not_exist")
        with pytest.raises(SinkWriteError) as exc:
            writer.write(records(1))
        assert exc.value.table == "does_not_exist"


class TestMultiTable:
    def multi(self, make_writer, **overrides):
        return make_writer(
            table=None,
            discriminator_field="c_string",
            table_mapping={"one": "hbase_sink_1", "two": "hbase_sink_2"},
            **overrides,
        )

    def test_records_split_by_discriminator(self, make_writer, fake_hbase):
        writer = self.multi(make_writer)
        result = writer.write([
            {"name": "a", "c_string": "one"},
            {"name": "b", "c_string": "two"},
            {"name": "c", "c_string": "one"},
        ])
        assert result.tables == {"hbase_sink_1": 2, "hbase_sink_2": 1}
        assert sorted(fake_hbase.rows("hbase_sink_1")) == [b"a", b"c"]
        assert sorted(fake_hbase.rows("hbase_sink_2")) == [b"b"]

    def test_partial_commit_reported(self, make_writer, fake_hbase):
        fake_hbase.failing_tables.add("hbase_sink_2")
        writer = self.multi(make_writer, retry={"max_attempts": 2, "initial_backoff_seconds": 0.01})
        with pytest.raises(SinkWriteError) as exc:
            writer.write([
                {"name": "a", "c_string": "one"},
                {"name": "b", "c_string": "two"},
            ])
        result = exc.value.result
        assert exc.value.table == "hbase_sink_2"
        assert result.tables == {"hbase_sink_1": 1}
        assert result.failed_tables == {"hbase_sink_2": 1}
        assert result.partial
        assert list(fake_hbase.rows("hbase_sink_1")) == [b"a"]
        assert fake_hbase.rows("hbase_sink_2") == {}


class TestInvalidRecords:
    def test_fail_policy_raises_with_index(self, make_writer):
        writer = make_writer()
        with pytest.raises(RowKeyError) as exc:
            writer.write([{"name": "A"}, {"c_int": 1}])
        assert exc.value.record_index == 1

    def test_fail_policy_counts_only_records_seen(self, make_writer):
        writer = make_writer()
        with pytest.raises(RowKeyError):
            writer.write([{"name": "A"}, {"c_int": 1}, {"name": "C"}, {"name": "D"}])
        assert writer.result.records_received == 2

    def test_fail_policy_routing_error(self, make_writer):
        writer = make_writer(
            table=None,
            discriminator_field="c_string",
            table_mapping={"one": "hbase_sink_1"},
        )
        with pytest.raises(RoutingError):
            writer.write([{"name": "A", "c_string": "nine"}])

    def test_skip_policy_counts_rejects(self, make_writer, fake_hbase):
        writer = make_writer(on_invalid_record="skip")
        result = writer.write([
            {"name": "A", "c_int": 1},
            {"c_int": 2},
            {"name": "C", "c_int": "three"},
            {"name": "D", "c_int": 4},
        ])
        assert result.records_received == 4
        assert result.records_written == 2
        assert result.records_rejected == 2
        assert len(result.errors) == 2
        assert sorted(fake_hbase.rows("seatunnel_test")) == [b"A", b"D"]


class TestShutdown:
    def test_stops_consuming_and_flushes(self, make_writer, fake_hbase):
        writer = make_writer()

        def stream():
            yield {"name": "A"}
            yield {"name": "B"}
            writer.shutdown()
            yield {"name": "C"}
            yield {"name": "D"}

        result = writer.write(stream())
        assert result.records_written == 2
        assert sorted(fake_hbase.rows("seatunnel_test")) == [b"A", b"B"]
