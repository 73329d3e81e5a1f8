# ==============================================
# Pytest Configuration and Fixtures
# ==============================================
#
# Shared fixtures for all tests.
#
# The HBase Thrift gateway is replaced by an in-memory fake with
# the same surface happybase exposes (ConnectionPool.connection(),
# Connection.tables/create_table/table, Table.batch/scan/delete).
# Failures are injected with thriftpy2's transport exception, the
# same type a dead gateway raises.
#
# FIXTURES:
# ---------
# - fake_hbase        → FakeHBase server state
# - fake_pool         → FakeConnectionPool over fake_hbase
# - client            → connected HBaseClient using fake_pool
# - sample_schema     → dict schema covering every scalar + arrays
# - sample_record     → record matching sample_schema
# - make_sink_config  → factory for SinkConfig with overrides
# - make_source_config → factory for SourceConfig with overrides
# - no_sleep          → list to pass as sleep=no_sleep.append
#
# ==============================================

from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal

import pytest
from thriftpy2.thrift import TApplicationException
from thriftpy2.transport import TTransportException

from hbase_connector.config import SinkConfig, SourceConfig
from hbase_connector.storage.hbase_client import KEY_ONLY_FILTER, HBaseClient


class FakeHBase:
    """Server-side state: table → row key → column → value."""

    def __init__(self):
        self.tables = {}
        self.families = {}
        self.timestamps = {}
        self.put_failures = 0
        self.put_failure = lambda: TTransportException(message="Connection refused")
        self.failing_tables = set()
        self.put_calls = 0
        self.scan_fail_after = None
        self.open_scanners = 0
        self.wal_flags = []

    def create_table(self, name, families):
        self.tables[name] = {}
        self.families[name] = set(families)

    def rows(self, table):
        return self.tables[table]


class FakeBatch:
    def __init__(self, server, table, timestamp=None, wal=True):
        self.server = server
        self.table = table
        self.timestamp = timestamp
        self.wal = wal
        self.mutations = []

    def put(self, row, data, wal=None):
        self.mutations.append(("put", bytes(row), dict(data)))

    def delete(self, row, columns=None, wal=None):
        self.mutations.append(("delete", bytes(row), None))

    def send(self):
        server = self.server
        if self.table not in server.tables:
            raise TApplicationException(message=f"TableNotFoundException: {self.table}")
        if any(op == "put" for op, _, _ in self.mutations):
            server.put_calls += 1
            server.wal_flags.append(self.wal)
            if self.table in server.failing_tables:
                raise server.put_failure()
            if server.put_failures:
                server.put_failures -= 1
                raise server.put_failure()
        rows = server.tables[self.table]
        for op, row, data in self.mutations:
            if op == "put":
                cells = rows.setdefault(row, {})
                for column, value in data.items():
                    column = column if isinstance(column, bytes) else column.encode()
                    cells[column] = bytes(value)
                    server.timestamps[(self.table, row, column)] = self.timestamp
            else:
                rows.pop(row, None)
        self.mutations = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.send()


class FakeTable:
    def __init__(self, server, name):
        self.server = server
        self.name = name

    def batch(self, timestamp=None, batch_size=None, transaction=False, wal=True):
        return FakeBatch(self.server, self.name, timestamp, wal)

    def _matches(self, column, columns):
        for wanted in columns:
            wanted = wanted if isinstance(wanted, bytes) else wanted.encode()
            if column == wanted or (b":" not in wanted and column.startswith(wanted + b":")):
                return True
        return False

    def scan(self, row_start=None, row_stop=None, row_prefix=None, columns=None,
             filter=None, batch_size=1000, **kwargs):
        server = self.server
        if self.name not in server.tables:
            raise TApplicationException(message=f"TableNotFoundException: {self.name}")
        server.open_scanners += 1
        try:
            emitted = 0
            for row_key in sorted(server.tables[self.name]):
                if row_prefix is not None and not row_key.startswith(row_prefix):
                    continue
                if row_start is not None and row_key < row_start:
                    continue
                if row_stop is not None and row_key >= row_stop:
                    continue
                if server.scan_fail_after is not None and emitted >= server.scan_fail_after:
                    raise TTransportException(message="Socket closed")
                cells = dict(server.tables[self.name][row_key])
                if columns:
                    cells = {c: v for c, v in cells.items() if self._matches(c, columns)}
                    if not cells:
                        continue
                if filter == KEY_ONLY_FILTER:
                    cells = {sorted(cells)[0]: b""} if cells else {}
                emitted += 1
                yield row_key, cells
        finally:
            server.open_scanners -= 1

    def row(self, row):
        return dict(self.server.tables[self.name].get(row, {}))

    def delete(self, row, columns=None, timestamp=None, wal=True):
        self.server.tables[self.name].pop(row, None)


class FakeConnection:
    def __init__(self, server):
        self.server = server

    def tables(self):
        return [name.encode() for name in sorted(self.server.tables)]

    def create_table(self, name, families):
        self.server.create_table(name, families)

    def table(self, name):
        name = name.decode() if isinstance(name, bytes) else name
        return FakeTable(self.server, name)


class FakeConnectionPool:
    def __init__(self, server):
        self.server = server
        self.borrowed = 0

    @contextmanager
    def connection(self, timeout=None):
        self.borrowed += 1
        try:
            yield FakeConnection(self.server)
        finally:
            self.borrowed -= 1


@pytest.fixture
def fake_hbase():
    server = FakeHBase()
    for name in ("seatunnel_test", "hbase_sink_1", "hbase_sink_2"):
        server.create_table(name, ["info"])
    return server


@pytest.fixture
def fake_pool(fake_hbase):
    return FakeConnectionPool(fake_hbase)


@pytest.fixture
def client(fake_pool):
    hbase_client = HBaseClient(host="hbase-test", port=9090, pool=fake_pool)
    hbase_client.connect()
    yield hbase_client
    hbase_client.disconnect()


@pytest.fixture
def no_sleep():
    delays = []
    return delays


@pytest.fixture
def sample_schema():
    return {
        "name": "string",
        "c_string": "string",
        "c_boolean": "boolean",
        "c_tinyint": "tinyint",
        "c_smallint": "smallint",
        "c_int": "int",
        "c_bigint": "bigint",
        "c_float": "float",
        "c_double": "double",
        "c_decimal": "decimal",
        "c_date": "date",
        "c_timestamp": "timestamp",
        "c_array_string": "array<string>",
        "c_array_int": "array<int>",
    }


@pytest.fixture
def sample_record():
    return {
        "name": "A",
        "c_string": "hello",
        "c_boolean": True,
        "c_tinyint": 7,
        "c_smallint": -300,
        "c_int": 123456,
        "c_bigint": 9_000_000_000,
        "c_float": 1.5,
        "c_double": 3.14159,
        "c_decimal": Decimal("12.50"),
        "c_date": date(2024, 2, 29),
        "c_timestamp": datetime(2024, 2, 29, 13, 45, 1, 250000),
        "c_array_string": ["a", "b", "c"],
        "c_array_int": [4, 5, 6],
    }


@pytest.fixture
def make_sink_config(sample_schema):
    def factory(**overrides):
        settings = {
            "table": "seatunnel_test",
            "rowkey_fields": ["name"],
            "schema": sample_schema,
            "batch": {"batch_size": 100, "batch_timeout_seconds": 60.0},
            "retry": {"max_attempts": 3, "initial_backoff_seconds": 0.01},
            "worker_count": 2,
        }
        settings.update(overrides)
        return SinkConfig.from_dict(settings)
    return factory


@pytest.fixture
def make_source_config(sample_schema):
    def factory(**overrides):
        settings = {
            "table": "seatunnel_test",
            "rowkey_field": "name",
            "schema": sample_schema,
        }
        settings.update(overrides)
        return SourceConfig.from_dict(settings)
    return factory
