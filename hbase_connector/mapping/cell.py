# ==============================================
# Cell / MappedRow (Data Classes)
# ==============================================
#
# PURPOSE:
#   Value types passed between the mapper, the sink writer and
#   the store client.
#
# CLASSES:
# --------
# - Cell (frozen dataclass)
#     family: str, qualifier: str, value: bytes, timestamp: int | None
#     column → b"family:qualifier", the key happybase uses
#
# - MappedRow (dataclass)
#     row_key: bytes
#     cells: list[Cell]            → unique per (family, qualifier)
#     timestamp: int | None        → cell version, from the version field
#     source_index: int | None     → position of the record in its stream
#
# ==============================================

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class Cell:
    family: str
    qualifier: str
    value: bytes
    timestamp: Optional[int] = None

    @property
    def column(self) -> bytes:
        return f"{self.family}:{self.qualifier}".encode("utf-8")

    @classmethod
    def from_column(cls, column: bytes, value: bytes, timestamp: Optional[int] = None) -> "Cell":
        text = column.decode("utf-8") if isinstance(column, (bytes, bytearray)) else column
        family, _, qualifier = text.partition(":")
        return cls(family, qualifier, bytes(value), timestamp)


@dataclass
class MappedRow:
    row_key: bytes
    cells: List[Cell] = field(default_factory=list)
    timestamp: Optional[int] = None
    source_index: Optional[int] = None

    def to_put(self) -> Dict[bytes, bytes]:
        """Column → value dict in the shape happybase's put() expects."""
        return {cell.column: cell.value for cell in self.cells}
