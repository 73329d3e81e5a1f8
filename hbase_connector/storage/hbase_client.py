# ==============================================
# HBaseClient
# ==============================================
#
# PURPOSE:
#   Manages the connection pool to the HBase Thrift gateway and
#   all table operations the connector needs.
#
# WHY THIS CLASS EXISTS:
#   The sink flushes several tables concurrently and the source
#   keeps a scanner open while records are consumed. happybase
#   connections are not thread-safe, so every operation borrows a
#   connection from a happybase.ConnectionPool. This class also
#   turns Thrift / socket failures into the connector's errors:
#     - transport errors, timeouts → StoreUnavailableError (retryable)
#     - anything else from Thrift  → StoreError
#
# CLASS: HBaseClient
# ------------------
#   Stateful, holds the connection pool.
#
#   Constructor:
#   ------------
#   - __init__(host, port, pool_size=4, timeout_ms=None,
#              table_prefix=None, transport="buffered",
#              protocol="binary", pool=None)
#       Store connection params. Don't connect yet.
#
#   Methods:
#   --------
#   - connect() / disconnect()
#   - list_tables() -> list[str]
#   - table_exists(name) -> bool
#   - ensure_table(name, families) -> bool      (True if created)
#   - put_batch(table, rows, wal=True) -> int   (rows written)
#   - scan_rows(table, ...) -> iterator of (row_key, {column: value})
#   - delete_rows(table, row_keys) -> int
#   - clear_table(table) -> int                 (rows deleted)
#   - count_rows(table) -> int
#
#   Context Manager:
#   ----------------
#   - __enter__ / __exit__ for `with HBaseClient(...) as client:` usage.
#
# ==============================================

from contextlib import contextmanager
from itertools import groupby
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import happybase
from happybase.pool import NoConnectionsAvailable
from thriftpy2.thrift import TException
from thriftpy2.transport import TTransportException

from hbase_connector.config import HBaseConfig
from hbase_connector.errors import StoreError, StoreUnavailableError
from hbase_connector.mapping.cell import MappedRow

# Server-side filter returning only the first cell of each row, without values
KEY_ONLY_FILTER = b"FirstKeyOnlyFilter() AND KeyOnlyFilter()"


class HBaseClient:
    def __init__(
        self,
        host: str = "localhost",
        port: int = 9090,
        pool_size: int = 4,
        timeout_ms: Optional[int] = None,
        table_prefix: Optional[str] = None,
        transport: str = "buffered",
        protocol: str = "binary",
        pool: Any = None,
    ):
        self.host = host
        self.port = port
        self.pool_size = pool_size
        self.timeout_ms = timeout_ms
        self.table_prefix = table_prefix
        self.transport = transport
        self.protocol = protocol
        self._pool = pool
        self._injected_pool = pool is not None
        self._connected = False

    @classmethod
    def from_config(cls, config: HBaseConfig, pool: Any = None) -> "HBaseClient":
        return cls(
            host=config.host,
            port=config.port,
            pool_size=config.pool_size,
            timeout_ms=config.timeout_ms,
            table_prefix=config.table_prefix,
            transport=config.transport,
            protocol=config.protocol,
            pool=pool,
        )

    @property
    def connected(self) -> bool:
        return self._connected

    @contextmanager
    def _translate(self, action: str, table: Optional[str] = None):
        where = f" on table '{table}'" if table else ""
        try:
            yield
        except (TTransportException, NoConnectionsAvailable, OSError) as e:
            raise StoreUnavailableError(f"HBase {action}{where} failed: {e}") from e
        except TException as e:
            raise StoreError(f"HBase {action}{where} failed: {e}") from e

    def connect(self) -> None:
        # Build the pool (first connection opens immediately) and ping it.
        if self._connected:
            return
        with self._translate("connect"):
            if self._pool is None:
                self._pool = happybase.ConnectionPool(
                    size=self.pool_size,
                    host=self.host,
                    port=self.port,
                    timeout=self.timeout_ms,
                    table_prefix=self.table_prefix,
                    transport=self.transport,
                    protocol=self.protocol,
                )
            with self._pool.connection() as conn:
                conn.tables()
        self._connected = True
        print(f"✓ Connected to HBase at {self.host}:{self.port} (pool size {self.pool_size})")

    def disconnect(self) -> None:
        # happybase pools have no close(); dropping the pool closes its sockets.
        if self._connected:
            if not self._injected_pool:
                self._pool = None
            self._connected = False
            print("✓ Disconnected from HBase.")

    def _require_connection(self) -> None:
        if not self._connected:
            raise StoreError("Not connected to HBase.")

    def list_tables(self) -> List[str]:
        self._require_connection()
        with self._translate("list tables"):
            with self._pool.connection() as conn:
                names = conn.tables()
        return [n.decode("utf-8") if isinstance(n, bytes) else n for n in names]

    def table_exists(self, name: str) -> bool:
        return name in self.list_tables()

    def ensure_table(self, name: str, families: Iterable[str]) -> bool:
        # Create the table with the given column families if it doesn't exist.
        if self.table_exists(name):
            return False
        family_options: Dict[str, dict] = {family: dict() for family in sorted(set(families))}
        with self._translate("create table", name):
            with self._pool.connection() as conn:
                conn.create_table(name, family_options)
        print(f"✓ Created table '{name}' with families {sorted(family_options)}")
        return True

    def put_batch(self, table: str, rows: List[MappedRow], wal: bool = True) -> int:
        """
        Write rows to one table as bulk mutations.

        Rows sharing a cell timestamp go out in one happybase batch;
        consecutive runs keep the arrival order of the rows.

        Returns:
            Number of rows written
        """
        self._require_connection()
        if not rows:
            return 0
        with self._translate("put", table):
            with self._pool.connection() as conn:
                hbase_table = conn.table(table)
                for timestamp, run in groupby(rows, key=lambda r: r.timestamp):
                    with hbase_table.batch(timestamp=timestamp, wal=wal) as batch:
                        for row in run:
                            batch.put(row.row_key, row.to_put())
        return len(rows)

    def scan_rows(
        self,
        table: str,
        row_start: Optional[bytes] = None,
        row_stop: Optional[bytes] = None,
        row_prefix: Optional[bytes] = None,
        columns: Optional[List[bytes]] = None,
        batch_size: int = 1000,
        filter: Optional[bytes] = None,
    ) -> Iterator[Tuple[bytes, Dict[bytes, bytes]]]:
        # Generator: the scanner is closed on exhaustion, error or early close().
        self._require_connection()
        with self._translate("scan", table):
            with self._pool.connection() as conn:
                scanner = conn.table(table).scan(
                    row_start=row_start,
                    row_stop=row_stop,
                    row_prefix=row_prefix,
                    columns=columns,
                    filter=filter,
                    batch_size=batch_size,
                )
                try:
                    for row_key, data in scanner:
                        yield row_key, data
                finally:
                    scanner.close()

    def delete_rows(self, table: str, row_keys: Iterable[bytes], wal: bool = True) -> int:
        self._require_connection()
        deleted = 0
        with self._translate("delete", table):
            with self._pool.connection() as conn:
                with conn.table(table).batch(wal=wal) as batch:
                    for row_key in row_keys:
                        batch.delete(row_key)
                        deleted += 1
        return deleted

    def clear_table(self, table: str) -> int:
        # Delete every row; running it on an empty table is a no-op.
        row_keys = [key for key, _ in self.scan_rows(table, filter=KEY_ONLY_FILTER)]
        deleted = self.delete_rows(table, row_keys) if row_keys else 0
        print(f"✓ Cleared {deleted} rows from '{table}'.")
        return deleted

    def count_rows(self, table: str) -> int:
        return sum(1 for _ in self.scan_rows(table, filter=KEY_ONLY_FILTER))

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
