"""
app/api/dependencies.py

Shared FastAPI dependencies and response helpers for the sync endpoints.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from app.domain.sync import MISSING_CREDENTIALS, SyncKind
from app.sync.errors import ErrorCategory

# Upstream auth failures (401/403 from a provider) are not listed and map to 502.
_FATAL_STATUS_CODES = {
    MISSING_CREDENTIALS: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.RATE_LIMITED.value: status.HTTP_429_TOO_MANY_REQUESTS,
}


def get_record_kind(kind: str) -> str:
    """
    Translate a hyphenated path segment (``harvest-invoices``) to a record
    sync kind, rejecting anything that is not a record sync.
    """

    normalized = kind.strip().lower().replace("-", "_")
    if normalized not in SyncKind.RECORD_KINDS:
        allowed = ", ".join(item.replace("_", "-") for item in SyncKind.RECORD_KINDS)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown sync kind '{kind}'. Allowed: {allowed}",
        )
    return normalized


def result_status_code(*, failed: bool, partial: bool, fatal_category: str | None) -> int:
    """
    HTTP status for a run result: 200 when clean, 207 when items failed.
    A failed run is 400 only when local credentials are missing, 429 when
    rate limited and 502 otherwise.
    """

    if failed:
        return _FATAL_STATUS_CODES.get(fatal_category or "", status.HTTP_502_BAD_GATEWAY)
    if partial:
        return status.HTTP_207_MULTI_STATUS
    return status.HTTP_200_OK
