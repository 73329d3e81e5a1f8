# ==============================================
# HBaseSourceReader
# ==============================================
#
# PURPOSE:
#   Scans an HBase table and yields one reconstructed record per
#   row, lazily, in scan order.
#
# CLASS: HBaseSourceReader
# ------------------------
#   Constructor:
#   ------------
#   - __init__(client, config: SourceConfig, mapper=None)
#
#   Methods:
#   --------
#   - scan(table_name=None) -> Iterator[dict]
#       Full-table, start/stop range or prefix scan. A generator:
#       finite, single consumer, not restartable. The scanner is
#       closed when the generator ends, fails or is closed early.
#       Transport failures raise SourceReadError (no resume).
#
#   - read_all(table_name=None) -> list[dict]
#   - count(table_name=None) -> int
#
# NOTES:
# ------
#   A row without any cell for the schema still yields a record
#   (all fields None). HBase only returns such a row when the scan
#   is not restricted to the schema's columns, so by default the
#   scan fetches every column and the mapper filters.
#
# ==============================================

from typing import Any, Dict, Iterator, List, Optional

from hbase_connector.config import SourceConfig, validate_table_name
from hbase_connector.errors import StoreError, SourceReadError
from hbase_connector.mapping.row_mapper import RowMapper


class HBaseSourceReader:
    def __init__(self, client, config: SourceConfig, mapper: Optional[RowMapper] = None):
        self._client = client
        self.config = config
        self._mapper = mapper or RowMapper.for_source(config)
        self.rows_read = 0

    def _encode_bound(self, value: Optional[str]) -> Optional[bytes]:
        return value.encode(self.config.encoding) if value is not None else None

    def scan(self, table_name: Optional[str] = None) -> Iterator[Dict[str, Any]]:
        """
        Lazily scan a table.

        Args:
            table_name: Table to scan, defaults to the configured one

        Yields:
            One record (dict over the schema fields) per row
        """
        table = validate_table_name(table_name or self.config.table)
        columns = self._mapper.columns if self.config.restrict_columns else None
        self.rows_read = 0

        rows = self._client.scan_rows(
            table,
            row_start=self._encode_bound(self.config.start_row),
            row_stop=self._encode_bound(self.config.stop_row),
            row_prefix=self._encode_bound(self.config.row_prefix),
            columns=columns,
            batch_size=self.config.scan_batch_size,
        )
        try:
            while True:
                try:
                    row_key, cells = next(rows)
                except StopIteration:
                    break
                except StoreError as e:
                    print(f"✗ Scan of '{table}' failed after {self.rows_read} rows: {e}")
                    raise SourceReadError(table, str(e), rows_read=self.rows_read) from e
                self.rows_read += 1
                yield self._mapper.from_row(table, row_key, cells)
        finally:
            rows.close()

    def read_all(self, table_name: Optional[str] = None) -> List[Dict[str, Any]]:
        return list(self.scan(table_name))

    def count(self, table_name: Optional[str] = None) -> int:
        return sum(1 for _ in self.scan(table_name))
