# ==============================================
# DESTINATION ROUTING
# ==============================================
#
# Modules:
# --------
# - destination_router.py → DestinationRouter, TableRef
#
# ==============================================

from .destination_router import DestinationRouter, TableRef

__all__ = ["DestinationRouter", "TableRef"]
