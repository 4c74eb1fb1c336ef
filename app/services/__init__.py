"""
app/services package marker.
"""

from app.services.invoice_deal_service import InvoiceDealService, get_invoice_deal_service
from app.services.release_note_service import ReleaseNoteService, get_release_note_service
from app.services.sync_service import SyncService, get_sync_service

__all__ = [
    "InvoiceDealService",
    "get_invoice_deal_service",
    "ReleaseNoteService",
    "get_release_note_service",
    "SyncService",
    "get_sync_service",
]
