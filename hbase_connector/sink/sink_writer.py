# ==============================================
# HBaseSinkWriter
# ==============================================
#
# PURPOSE:
#   Writes a stream of records into one or more HBase tables.
#
# HOW IT WORKS:
#
#   records ──► [ worker pool ] map (RowMapper) + route (DestinationRouter)
#                     │  results consumed in input order
#                     ▼
#        ┌────────────┴────────────┐
#   [ TableBatch t1 ]   [ TableBatch t2 ] ...   one lock per table
#        │ size / age threshold    │
#        ▼                         ▼
#   put_batch(t1) + retry     put_batch(t2) + retry   (independent)
#   each put holds at most batch_size rows
#
#   States: IDLE → ACCUMULATING → FLUSHING → IDLE
#                                     └────→ FAILED
#
# CLASS: HBaseSinkWriter
# ----------------------
#   Constructor:
#   ------------
#   - __init__(client, config, mapper=None, router=None, sleep=time.sleep)
#
#   Methods:
#   --------
#   - write(records) -> WriteResult
#       Consume records until the iterable ends or shutdown() is
#       called, then flush what is pending. A record waits on the
#       pool at most batch_timeout_seconds before it is accepted.
#   - write_one(record) -> None
#   - flush() -> WriteResult      flush every table, concurrently
#   - flush_due() -> WriteResult  flush only tables past a threshold
#   - shutdown()                  stop consuming, keep pending rows
#   - close()                     final flush + stop the pool
#
# ERRORS:
# -------
#   - UnsupportedTypeError / RowKeyError / RoutingError
#       Raised on the first invalid record (on_invalid_record="fail"),
#       or counted and skipped (on_invalid_record="skip").
#   - SinkWriteError
#       A table's batch failed after its retry budget. The writer is
#       FAILED; result.tables shows what other tables committed.
#
# ==============================================

import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Optional, Tuple

from hbase_connector.config import SinkConfig
from hbase_connector.errors import (
    RoutingError,
    RowKeyError,
    SinkWriteError,
    StoreError,
    StoreUnavailableError,
    UnsupportedTypeError,
)
from hbase_connector.mapping.cell import MappedRow
from hbase_connector.mapping.row_mapper import RowMapper
from hbase_connector.routing.destination_router import DestinationRouter
from hbase_connector.sink.results import SinkState, TableFlushResult, WriteResult
from hbase_connector.sink.table_batch import TableBatch

RECORD_ERRORS = (UnsupportedTypeError, RowKeyError, RoutingError)


@dataclass
class _Prepared:
    index: int
    table: Optional[str] = None
    row: Optional[MappedRow] = None
    error: Optional[Exception] = None


class HBaseSinkWriter:
    def __init__(
        self,
        client,
        config: SinkConfig,
        mapper: Optional[RowMapper] = None,
        router: Optional[DestinationRouter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._client = client
        self.config = config
        self._mapper = mapper or RowMapper.for_sink(config)
        self._router = router or DestinationRouter.from_config(config)
        self._sleep = sleep

        self._pool = ThreadPoolExecutor(
            max_workers=config.worker_count,
            thread_name_prefix="hbase-sink",
        )
        self._window = config.worker_count * 32
        self._batches: Dict[str, TableBatch] = {}
        self._batches_lock = threading.Lock()
        self._ensured_tables = set()
        self._ensure_lock = threading.Lock()
        self._shutdown = threading.Event()
        self._state = SinkState.IDLE
        self._state_lock = threading.Lock()
        self._failed_table: Optional[str] = None
        self._result = WriteResult()

    # ------------------------------------------
    # State
    # ------------------------------------------

    @property
    def state(self) -> SinkState:
        with self._state_lock:
            return self._state

    @property
    def result(self) -> WriteResult:
        return self._result

    @property
    def pending_rows(self) -> int:
        return sum(len(batch) for batch in self._snapshot_batches())

    def _set_state(self, state: SinkState) -> None:
        with self._state_lock:
            if self._state in (SinkState.FAILED, SinkState.CLOSED):
                return
            self._state = state

    def _settle_state(self) -> None:
        self._set_state(SinkState.ACCUMULATING if self.pending_rows else SinkState.IDLE)

    def _check_open(self) -> None:
        state = self.state
        if state == SinkState.FAILED:
            raise SinkWriteError(
                self._failed_table or "",
                0,
                message=f"Sink writer has failed on table '{self._failed_table}', no more writes accepted",
                result=self._result,
            )
        if state == SinkState.CLOSED:
            raise SinkWriteError("", 0, message="Sink writer is closed", result=self._result)

    # ------------------------------------------
    # Writing
    # ------------------------------------------

    def write(self, records: Iterable[Mapping[str, Any]]) -> WriteResult:
        """
        Consume a stream of records.

        Records are mapped on the worker pool as they arrive and accepted
        in input order. A table is flushed as soon as its batch is due.

        Args:
            records: Any iterable of record mappings (may be a generator)

        Returns:
            WriteResult with the running totals of this writer
        """
        self._check_open()
        in_flight: Deque[Tuple[float, "Future[_Prepared]"]] = deque()
        index = self._result.records_received
        for record in records:
            if self._shutdown.is_set():
                print("⚠ Shutdown requested, draining pending batches")
                break
            in_flight.append((time.monotonic(), self._pool.submit(self._prepare, index, record)))
            index += 1
            self._accept_ready(in_flight)
        self._accept_ready(in_flight, wait_all=True)
        return self.flush()

    def write_one(self, record: Mapping[str, Any]) -> None:
        self._check_open()
        self._accept(self._prepare(self._result.records_received, record))
        self.flush_due()

    def _accept_ready(self, in_flight: Deque[Tuple[float, "Future[_Prepared]"]], wait_all: bool = False) -> None:
        # The head is waited for once the window is full or it is older than the batch timeout.
        timeout = self.config.batch.batch_timeout_seconds
        while in_flight:
            submitted, future = in_flight[0]
            if not (wait_all or future.done() or len(in_flight) >= self._window
                    or time.monotonic() - submitted >= timeout):
                break
            in_flight.popleft()
            due = self._accept(future.result())
            if due is not None:
                self._flush([due])
        self.flush_due()

    def _prepare(self, index: int, record: Mapping[str, Any]) -> _Prepared:
        # Runs on the worker pool: no shared state touched here.
        try:
            table = self._router.route(record)
            row = self._mapper.to_cells(record)
        except RECORD_ERRORS as e:
            return _Prepared(index, error=e)
        row.source_index = index
        return _Prepared(index, table=table.name, row=row)

    def _accept(self, item: _Prepared) -> Optional[TableBatch]:
        """Add a prepared record to its table's batch. Returns the batch if it is now due."""
        self._result.records_received += 1
        if item.error is not None:
            message = f"Record #{item.index} rejected ({type(item.error).__name__}): {item.error}"
            if self.config.on_invalid_record == "fail":
                item.error.record_index = item.index
                raise item.error
            self._result.records_rejected += 1
            self._result.errors.append(message)
            print(f"⚠ {message}")
            return None

        batch = self._batch_for(item.table)
        due = batch.append(item.row)
        self._set_state(SinkState.ACCUMULATING)
        return batch if due else None

    def _batch_for(self, table: str) -> TableBatch:
        with self._batches_lock:
            batch = self._batches.get(table)
            if batch is None:
                batch = TableBatch(
                    table,
                    self.config.batch.batch_size,
                    self.config.batch.batch_timeout_seconds,
                )
                self._batches[table] = batch
            return batch

    def _snapshot_batches(self) -> List[TableBatch]:
        with self._batches_lock:
            return list(self._batches.values())

    # ------------------------------------------
    # Flushing
    # ------------------------------------------

    def flush_due(self) -> WriteResult:
        """Flush only the tables whose batch reached its size or age threshold."""
        return self._flush([batch for batch in self._snapshot_batches() if batch.is_due()])

    def flush(self) -> WriteResult:
        """Flush every table with pending rows. Tables are flushed concurrently."""
        return self._flush([batch for batch in self._snapshot_batches() if len(batch)])

    def _flush(self, batches: List[TableBatch]) -> WriteResult:
        self._check_open()
        if not batches:
            return self._result

        self._set_state(SinkState.FLUSHING)
        if len(batches) == 1:
            outcomes = [self._flush_table(batches[0])]
        else:
            futures = [self._pool.submit(self._flush_table, batch) for batch in batches]
            outcomes = [future.result() for future in futures]

        failures = []
        for outcome in outcomes:
            self._result.add_flush(outcome)
            if not outcome.success:
                failures.append(outcome)

        if failures:
            first = failures[0]
            with self._state_lock:
                self._state = SinkState.FAILED
                self._failed_table = first.table
            if self._result.partial:
                print(f"⚠ Partial commit: {sorted(self._result.tables)} written, "
                      f"{sorted(self._result.failed_tables)} failed")
            raise SinkWriteError(
                first.table,
                sum(f.rows - f.written for f in failures),
                message=f"Failed to write {first.rows - first.written} rows to table '{first.table}': {first.error}",
                result=self._result,
            )

        self._settle_state()
        return self._result

    def _flush_table(self, batch: TableBatch) -> TableFlushResult:
        with batch.flush_lock:
            rows = batch.drain()
            if not rows:
                return TableFlushResult(batch.table, 0, True)

            start_time = time.time()
            size = self.config.batch.batch_size
            written = 0
            attempts = 0
            for offset in range(0, len(rows), size):
                chunk = rows[offset:offset + size]
                used, error = self._put_with_retry(batch.table, chunk)
                attempts += used
                if error is not None:
                    return TableFlushResult(batch.table, len(rows), False, attempts, error, written)
                written += len(chunk)

            elapsed = time.time() - start_time
            print(f"✓ Flushed {written} rows to '{batch.table}' in {elapsed:.2f}s")
            return TableFlushResult(batch.table, len(rows), True, attempts, written=written)

    def _put_with_retry(self, table: str, rows: List[MappedRow]) -> Tuple[int, Optional[str]]:
        """One bulk put of at most batch_size rows. Returns (attempts, error or None)."""
        retry = self.config.retry
        attempt = 0
        while True:
            attempt += 1
            try:
                self._ensure_table(table)
                self._client.put_batch(table, rows, wal=self.config.wal)
                return attempt, None
            except StoreUnavailableError as e:
                if attempt >= retry.max_attempts:
                    print(f"✗ Giving up on '{table}' after {attempt} attempts: {e}")
                    return attempt, str(e)
                delay = retry.backoff_for(attempt)
                print(f"⟳ Retrying '{table}' ({attempt}/{retry.max_attempts}) in {delay:.2f}s: {e}")
                self._sleep(delay)
            except StoreError as e:
                print(f"✗ Write to '{table}' failed: {e}")
                return attempt, str(e)

    def _ensure_table(self, table: str) -> None:
        if not self.config.create_tables:
            return
        with self._ensure_lock:
            if table in self._ensured_tables:
                return
            self._client.ensure_table(table, self._mapper.families)
            self._ensured_tables.add(table)

    # ------------------------------------------
    # Lifecycle
    # ------------------------------------------

    def shutdown(self) -> None:
        """Ask write() to stop consuming; pending rows get one final flush."""
        self._shutdown.set()

    def close(self) -> WriteResult:
        if self.state == SinkState.CLOSED:
            return self._result
        try:
            if self.state != SinkState.FAILED and self.pending_rows:
                self.flush()
        finally:
            self._pool.shutdown(wait=True)
            with self._state_lock:
                if self._state != SinkState.FAILED:
                    self._state = SinkState.CLOSED
            print(f"✓ Sink closed: {self._result.records_written} written, "
                  f"{self._result.records_rejected} rejected, "
                  f"{sum(self._result.failed_tables.values())} failed")
        return self._result

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
