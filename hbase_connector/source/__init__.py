# ==============================================
# SOURCE (HBase → records)
# ==============================================
#
# Modules:
# --------
# - source_reader.py → HBaseSourceReader (lazy table scan)
#
# ==============================================

from .source_reader import HBaseSourceReader

__all__ = ["HBaseSourceReader"]
