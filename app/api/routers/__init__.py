"""
app/api/routers package marker.
"""

from app.api.routers.mappings_router import router as mappings_router
from app.api.routers.records_router import router as records_router
from app.api.routers.sync_router import router as sync_router

__all__ = [
    "mappings_router",
    "records_router",
    "sync_router",
]
