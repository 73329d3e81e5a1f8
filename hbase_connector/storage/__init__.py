# ==============================================
# STORAGE (HBase Thrift gateway)
# ==============================================
#
# This package owns every RPC to HBase: pooled connections,
# table creation, bulk puts, scans and deletes.
#
# Modules:
# --------
# - hbase_client.py → HBaseClient over happybase.ConnectionPool
#
# ==============================================

from .hbase_client import HBaseClient

__all__ = ["HBaseClient"]
