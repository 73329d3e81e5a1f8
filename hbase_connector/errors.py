# ==============================================
# Error Taxonomy
# ==============================================
#
# PURPOSE:
#   All exceptions raised by the connector. The CLI maps any
#   ConnectorError to a non-zero exit status.
#
# HIERARCHY:
# ----------
#   ConnectorError
#   ├── ConfigError
#   ├── UnsupportedTypeError      → value/type cannot be encoded (record rejected)
#   ├── CodecError                → stored bytes cannot be decoded
#   ├── RowKeyError               → row key field missing (record rejected)
#   ├── RoutingError              → no destination table (record rejected)
#   ├── StoreError                → non-retryable RPC failure
#   │   └── StoreUnavailableError → retryable transport failure
#   ├── SinkWriteError            → retry budget exhausted (fatal to the sink)
#   └── SourceReadError           → transport failure mid-scan (fatal to the read)
#
# ==============================================

from typing import Any, Optional


class ConnectorError(Exception):
    """Base class for every error raised by the connector."""

    # Position of the offending record in its input stream, when known
    record_index: Optional[int] = None


class ConfigError(ConnectorError):
    """Invalid or incomplete connector configuration."""


class UnsupportedTypeError(ConnectorError):
    """A declared type or a value is outside the supported set."""


class CodecError(ConnectorError):
    """Stored bytes could not be decoded as their declared type."""


class RowKeyError(ConnectorError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class RoutingError(ConnectorError):
    def __init__(self, message: str, value: Any = None):
        super().__init__(message)
        self.value = value


class StoreError(ConnectorError):
    """The store rejected an operation. Not retried."""


class StoreUnavailableError(StoreError):
    """Transport failure or timeout talking to the store. Safe to retry."""


class SinkWriteError(ConnectorError):
    """
    A batch could not be written to its table.

    Attributes:
        table: Destination table of the failed batch
        failed_count: Number of rows in the failed batch(es)
        result: WriteResult at the time of failure (may show other
                tables that were committed successfully)
    """

    def __init__(self, table: str, failed_count: int, message: str = "", result: Any = None):
        text = message or f"failed to write {failed_count} rows to table '{table}'"
        super().__init__(text)
        self.table = table
        self.failed_count = failed_count
        self.result = result


class SourceReadError(ConnectorError):
    def __init__(self, table: str, message: str = "", rows_read: int = 0):
        super().__init__(message or f"scan of table '{table}' failed after {rows_read} rows")
        self.table = table
        self.rows_read = rows_read
