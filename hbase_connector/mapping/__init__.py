# ==============================================
# ROW / CELL MAPPING
# ==============================================
#
# Modules:
# --------
# - cell.py       → Cell, MappedRow value types
# - row_mapper.py → RowMapper (record ⇄ row key + cells)
#
# ==============================================

from .cell import Cell, MappedRow
from .row_mapper import RowMapper

__all__ = ["Cell", "MappedRow", "RowMapper"]
