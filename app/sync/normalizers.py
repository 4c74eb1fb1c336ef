"""
app/sync/normalizers.py

Pure transforms from external wire payloads into canonical records.

Nothing here performs I/O. Coercion helpers never raise on bad input: an
unparseable amount or date becomes None. Only a missing natural key raises
`NormalizationError`, which the engine records as a skipped item.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from app.sync.exceptions import NormalizationError


@dataclass(frozen=True)
class NormalizedRecord:
    natural_key: str
    fields: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def parse_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    text = str(value).strip()
    if not text:
        return None
    try:
        parsed = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


def parse_datetime(value: Any) -> datetime | None:
    """
    Parse ISO-8601 strings or epoch milliseconds into an aware UTC datetime.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    text = str(value).strip()
    if not text:
        return None
    if text.isdigit():
        return parse_datetime(int(text))
    normalized = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Any) -> date | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        parsed = parse_datetime(text)
        return parsed.date() if parsed else None


def optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def optional_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return None


def _nested(payload: dict[str, Any], *keys: str) -> Any:
    current: Any = payload
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def require_natural_key(payload: Any, key: str, kind: str) -> str:
    if not isinstance(payload, dict):
        raise NormalizationError(f"{kind} payload must be an object, got {type(payload).__name__}.")
    natural_key = optional_str(payload.get(key))
    if natural_key is None:
        raise NormalizationError(f"{kind} payload is missing '{key}'.")
    return natural_key


# ---------------------------------------------------------------------------
# Meeting participants
# ---------------------------------------------------------------------------


def flatten_participants(raw: Any) -> list[str]:
    """
    Flatten a participants field into unique entries, first appearance wins.

    An entry containing commas is split only when at least one fragment
    looks like an individual: it contains "@" or equals another comma-free
    entry. Otherwise it is kept whole ("Acme, Inc.").
    """

    if raw is None:
        return []
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, Iterable):
        return []

    entries = [entry.strip() for entry in raw if isinstance(entry, str) and entry.strip()]
    individuals = {entry for entry in entries if "," not in entry}

    flattened: list[str] = []
    seen: set[str] = set()
    for entry in entries:
        candidates = [entry]
        if "," in entry:
            fragments = [fragment.strip() for fragment in entry.split(",") if fragment.strip()]
            if any("@" in fragment or fragment in individuals for fragment in fragments):
                candidates = fragments
        for candidate in candidates:
            if candidate not in seen:
                seen.add(candidate)
                flattened.append(candidate)
    return flattened


def build_meeting_summary(summary: Any) -> str | None:
    if not isinstance(summary, dict):
        return None

    parts: list[str] = []
    action_items = _join_summary_field(summary.get("action_items"))
    if action_items:
        parts.append(f"Action Items: {action_items}")
    outline = _join_summary_field(summary.get("outline"))
    if outline:
        parts.append(f"Outline: {outline}")
    keywords = _join_summary_field(summary.get("keywords"))
    if keywords:
        parts.append(f"Keywords: {keywords}")
    return "\n\n".join(parts) if parts else None


def _join_summary_field(value: Any) -> str | None:
    if isinstance(value, list):
        items = [str(item).strip() for item in value if item is not None and str(item).strip()]
        return ", ".join(items) if items else None
    return optional_str(value)


# ---------------------------------------------------------------------------
# Per-source normalizers
# ---------------------------------------------------------------------------


def normalize_harvest_client(payload: dict[str, Any]) -> NormalizedRecord:
    natural_key = require_natural_key(payload, "id", "Harvest client")
    return NormalizedRecord(
        natural_key=natural_key,
        fields={
            "name": optional_str(payload.get("name")) or f"Harvest client {natural_key}",
            "is_active": optional_bool(payload.get("is_active"), default=True),
        },
    )


def normalize_harvest_invoice(payload: dict[str, Any]) -> NormalizedRecord:
    natural_key = require_natural_key(payload, "id", "Harvest invoice")
    client = payload.get("client") if isinstance(payload.get("client"), dict) else {}
    state = optional_str(payload.get("state"))
    return NormalizedRecord(
        natural_key=natural_key,
        fields={
            "harvest_client_id": optional_str(client.get("id")),
            "client_name": optional_str(client.get("name")),
            "number": optional_str(payload.get("number")),
            "purchase_order": optional_str(payload.get("purchase_order")),
            "subject": optional_str(payload.get("subject")),
            "notes": optional_str(payload.get("notes")),
            "currency": optional_str(payload.get("currency")),
            "state": state.lower() if state else None,
            "amount": parse_decimal(payload.get("amount")),
            "due_amount": parse_decimal(payload.get("due_amount")),
            "tax": parse_decimal(payload.get("tax")),
            "tax_amount": parse_decimal(payload.get("tax_amount")),
            "discount": parse_decimal(payload.get("discount")),
            "discount_amount": parse_decimal(payload.get("discount_amount")),
            "issue_date": parse_date(payload.get("issue_date")),
            "due_date": parse_date(payload.get("due_date")),
            "paid_date": parse_date(payload.get("paid_date")),
            "payment_term": optional_str(payload.get("payment_term")),
            "source_created_at": parse_datetime(payload.get("created_at")),
            "source_updated_at": parse_datetime(payload.get("updated_at")),
            "payload": payload,
        },
    )


def normalize_crm_company(payload: dict[str, Any]) -> NormalizedRecord:
    natural_key = require_natural_key(payload, "id", "HubSpot company")
    properties = payload.get("properties") if isinstance(payload.get("properties"), dict) else {}
    return NormalizedRecord(
        natural_key=natural_key,
        fields={
            "name": optional_str(properties.get("name")),
            "domain": optional_str(properties.get("domain")),
            "owner_id": optional_str(properties.get("hubspot_owner_id")),
        },
    )


def normalize_github_repository(payload: dict[str, Any]) -> NormalizedRecord:
    natural_key = require_natural_key(payload, "id", "GitHub repository")
    name = optional_str(payload.get("name"))
    full_name = optional_str(payload.get("full_name"))
    if name is None or full_name is None:
        raise NormalizationError(f"GitHub repository {natural_key} is missing name/full_name.")
    return NormalizedRecord(
        natural_key=natural_key,
        fields={
            "full_name": full_name,
            "name": name,
            "owner_login": optional_str(_nested(payload, "owner", "login")),
            "html_url": optional_str(payload.get("html_url")),
            "description": optional_str(payload.get("description")),
            "is_private": optional_bool(payload.get("private")),
            "is_fork": optional_bool(payload.get("fork")),
            "is_archived": optional_bool(payload.get("archived")),
            "default_branch": optional_str(payload.get("default_branch")),
            "pushed_at": parse_datetime(payload.get("pushed_at")),
            "payload": {
                "language": payload.get("language"),
                "visibility": payload.get("visibility"),
                "topics": payload.get("topics") or [],
                "stargazers_count": payload.get("stargazers_count"),
            },
        },
    )


def normalize_meeting_transcript(payload: dict[str, Any]) -> NormalizedRecord:
    natural_key = require_natural_key(payload, "id", "Fireflies transcript")
    duration = payload.get("duration")
    return NormalizedRecord(
        natural_key=natural_key,
        fields={
            "title": optional_str(payload.get("title")),
            "meeting_date": parse_datetime(payload.get("date")),
            "duration_minutes": optional_int(duration) if duration else None,
            "participants": flatten_participants(payload.get("participants")),
            "transcript_url": optional_str(payload.get("transcript_url")),
            "summary": build_meeting_summary(payload.get("summary")),
            "notes": optional_str(_nested(payload, "summary", "overview")),
        },
    )


def normalize_slack_channel(payload: dict[str, Any]) -> NormalizedRecord:
    natural_key = require_natural_key(payload, "id", "Slack channel")
    return NormalizedRecord(
        natural_key=natural_key,
        fields={
            "name": optional_str(payload.get("name")) or natural_key,
            "is_private": optional_bool(payload.get("is_private")),
            "is_archived": optional_bool(payload.get("is_archived")),
            "member_count": optional_int(payload.get("num_members")),
            "topic": optional_str(_nested(payload, "topic", "value")),
            "purpose": optional_str(_nested(payload, "purpose", "value")),
        },
    )
