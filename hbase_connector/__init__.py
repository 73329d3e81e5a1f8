# ==============================================
# HBase Record Connector
# ==============================================
#
# Package Structure:
#
# hbase_connector/
# ├── codec/        # Typed values ⇄ cell bytes
# ├── mapping/      # Record ⇄ row key + cells
# ├── routing/      # Record → destination table
# ├── storage/      # happybase connection pool, table operations
# ├── sink/         # Batched, retried writes (one batch per table)
# ├── source/       # Lazy table scans → records
# ├── config.py     # Configuration management
# ├── errors.py     # Error taxonomy
# ├── pipeline.py   # Streaming driver for one job
# └── cli.py        # Command line entry point
#
# ==============================================

__version__ = "0.1.0"
