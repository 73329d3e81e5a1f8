# ==============================================
# SINK (records → HBase)
# ==============================================
#
# Modules:
# --------
# - table_batch.py → TableBatch, pending rows of one table
# - results.py     → SinkState, TableFlushResult, WriteResult
# - sink_writer.py → HBaseSinkWriter (map, route, batch, flush, retry)
#
# ==============================================

from .results import SinkState, TableFlushResult, WriteResult
from .sink_writer import HBaseSinkWriter
from .table_batch import TableBatch

__all__ = [
    "HBaseSinkWriter",
    "SinkState",
    "TableBatch",
    "TableFlushResult",
    "WriteResult",
]
