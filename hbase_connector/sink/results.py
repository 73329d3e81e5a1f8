# ==============================================
# Sink Results (Data Classes)
# ==============================================
#
# PURPOSE:
#   State and result types of the sink writer.
#
# ENUMS:
# ------
# - SinkState: IDLE, ACCUMULATING, FLUSHING, FAILED, CLOSED
#
# DATA CLASSES:
# -------------
# - TableFlushResult → outcome of one table's flush
#     rows: drained rows, written: rows committed before any failure
# - WriteResult      → running totals returned by write() / flush()
#     records_received, records_written, records_rejected
#     tables: dict[str, int]         rows committed per table
#     failed_tables: dict[str, int]  rows lost per table
#     errors: list[str]
#
#   A multi-table flush is not atomic: `partial` is True when some
#   tables committed and others failed.
#
# ==============================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class SinkState(Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass
class TableFlushResult:
    table: str
    rows: int
    success: bool
    attempts: int = 0
    error: Optional[str] = None
    written: int = 0


@dataclass
class WriteResult:
    records_received: int = 0
    records_written: int = 0
    records_rejected: int = 0
    tables: Dict[str, int] = field(default_factory=dict)
    failed_tables: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed_tables

    @property
    def partial(self) -> bool:
        return bool(self.tables) and bool(self.failed_tables)

    def add_flush(self, flush: TableFlushResult) -> None:
        if flush.written:
            self.records_written += flush.written
            self.tables[flush.table] = self.tables.get(flush.table, 0) + flush.written
        if not flush.success:
            lost = flush.rows - flush.written
            self.failed_tables[flush.table] = self.failed_tables.get(flush.table, 0) + lost
            self.errors.append(f"{flush.table}: {flush.error}")

    def to_dict(self) -> dict:
        return {
            "records_received": self.records_received,
            "records_written": self.records_written,
            "records_rejected": self.records_rejected,
            "tables": dict(self.tables),
            "failed_tables": dict(self.failed_tables),
            "errors": list(self.errors),
        }
