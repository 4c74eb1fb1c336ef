"""
app/sync/errors.py

Error classifier shared by every integration.

Raw failures arrive in many shapes: connector exceptions carrying a status
code, `requests` errors with a response, Slack `{ok: false, error: ...}`
payloads, GraphQL error lists or plain dicts. `classify_error` maps all of
them onto one small taxonomy and never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "Unknown error"

_RATE_LIMIT_PHRASES = ("rate limit", "too many requests")
_RATE_LIMIT_CODES = {"ratelimited", "rate_limited", "rate_limit_exceeded", "too_many_requests"}
_NOT_FOUND_CODES = {"not_found", "object_not_found", "channel_not_found", "user_not_found", "resource_not_found"}
_AUTH_CODES = {
    "invalid_auth",
    "not_authed",
    "account_inactive",
    "token_revoked",
    "token_expired",
    "missing_scope",
    "unauthorized",
    "unauthenticated",
    "forbidden",
}
_VALIDATION_CODES = {"invalid_arguments", "invalid_params", "validation_error", "bad_request", "invalid_cursor"}

_STATUS_KEYS = ("status", "statusCode", "status_code", "code")
_MESSAGE_KEYS = ("message", "error_description", "detail", "error")


class ErrorCategory(str, Enum):
    RATE_LIMITED = "rate_limited"
    NOT_FOUND = "not_found"
    AUTH_FAILURE = "auth_failure"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


_DEFAULT_MESSAGES = {
    ErrorCategory.RATE_LIMITED: "Rate limit exceeded",
    ErrorCategory.NOT_FOUND: "Resource not found",
    ErrorCategory.AUTH_FAILURE: "Authentication failed",
    ErrorCategory.VALIDATION: "Request rejected as invalid",
    ErrorCategory.UNKNOWN: UNKNOWN_ERROR_MESSAGE,
}


@dataclass(frozen=True)
class ClassifiedError:
    category: ErrorCategory
    message: str
    status_code: int | None = None
    code: str | None = None

    @property
    def retryable(self) -> bool:
        """Whether waiting for the next scheduled run is likely to help."""
        return self.category in {ErrorCategory.RATE_LIMITED, ErrorCategory.UNKNOWN}

    def describe(self) -> str:
        if self.category is ErrorCategory.UNKNOWN:
            return self.message
        return f"[{self.category.value}] {self.message}"


def classify_error(error: Any) -> ClassifiedError:
    """
    Map an arbitrary failure onto the error taxonomy.

    Priority: explicit 429, rate-limit wording or codes, not-found,
    auth, validation, then unknown.
    """

    try:
        return _classify(error)
    except Exception:  # noqa: BLE001
        logger.debug("Error classification fell back to unknown", exc_info=True)
        return ClassifiedError(category=ErrorCategory.UNKNOWN, message=UNKNOWN_ERROR_MESSAGE)


def format_error(context: str, error: Any) -> str:
    """
    Build one operator-facing error line, e.g.
    ``Error processing invoice 42: [rate_limited] Too many requests``.
    """

    classified = error if isinstance(error, ClassifiedError) else classify_error(error)
    return f"{context}: {classified.describe()}"


def summarize_errors(errors: Iterable[str], limit: int = 10) -> list[str]:
    """
    Return the first `limit` errors plus a trailing ``... and N more`` line.
    """

    all_errors = list(errors)
    limit = max(0, limit)
    if len(all_errors) <= limit:
        return all_errors
    remainder = len(all_errors) - limit
    return all_errors[:limit] + [f"... and {remainder} more"]


def _classify(error: Any) -> ClassifiedError:
    status_code = _extract_status(error)
    code = _extract_code(error)
    message = _extract_message(error)
    normalized_code = code.lower() if code else None
    lowered = message.lower() if message else ""

    category: ErrorCategory | None = None
    if status_code == 429:
        category = ErrorCategory.RATE_LIMITED
    elif any(phrase in lowered for phrase in _RATE_LIMIT_PHRASES) or normalized_code in _RATE_LIMIT_CODES:
        category = ErrorCategory.RATE_LIMITED
    elif status_code == 404 or _is_not_found_code(normalized_code):
        category = ErrorCategory.NOT_FOUND
    elif status_code in {401, 403} or normalized_code in _AUTH_CODES:
        category = ErrorCategory.AUTH_FAILURE
    elif status_code in {400, 409, 422} or normalized_code in _VALIDATION_CODES:
        category = ErrorCategory.VALIDATION

    if category is None:
        return ClassifiedError(
            category=ErrorCategory.UNKNOWN,
            message=message or UNKNOWN_ERROR_MESSAGE,
            status_code=status_code,
            code=code,
        )
    return ClassifiedError(
        category=category,
        message=message or _DEFAULT_MESSAGES[category],
        status_code=status_code,
        code=code,
    )


def _is_not_found_code(code: str | None) -> bool:
    if not code:
        return False
    return code in _NOT_FOUND_CODES or code.endswith("_not_found")


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _extract_status(error: Any) -> int | None:
    if isinstance(error, dict):
        for key in _STATUS_KEYS:
            status = _as_int(error.get(key))
            if status is not None:
                return status
        response = error.get("response")
        if isinstance(response, dict):
            return _extract_status(response)
        return None

    for attr in ("status_code", "status", "statusCode", "code"):
        status = _as_int(getattr(error, attr, None))
        if status is not None:
            return status
    response = getattr(error, "response", None)
    if response is not None:
        return _as_int(getattr(response, "status_code", None))
    return None


def _extract_code(error: Any) -> str | None:
    if isinstance(error, dict):
        for candidate in (error.get("code"), error.get("error"), _nested(error, "data", "error")):
            if isinstance(candidate, str) and candidate.strip() and " " not in candidate.strip():
                return candidate.strip()
        return None

    code = getattr(error, "code", None)
    if isinstance(code, str) and code.strip():
        return code.strip()
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        return _extract_code(body)
    return None


def _extract_message(error: Any) -> str | None:
    if error is None:
        return None
    if isinstance(error, str):
        return error.strip() or None
    if isinstance(error, dict):
        for key in _MESSAGE_KEYS:
            value = error.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        body_message = _nested(error, "body", "message")
        if isinstance(body_message, str) and body_message.strip():
            return body_message.strip()
        data_error = _nested(error, "data", "error")
        if isinstance(data_error, str) and data_error.strip():
            return data_error.strip()
        return None

    message = getattr(error, "message", None)
    if isinstance(message, str) and message.strip():
        return message.strip()
    text = str(error).strip()
    return text or None


def _nested(payload: dict[str, Any], *keys: str) -> Any:
    current: Any = payload
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current
