"""
tests/test_normalizers.py

Pytest unit tests for the wire-payload normalizers.

Coverage
--------
- Lenient coercion of amounts, dates and epoch milliseconds
- Participant flattening with the "looks like an individual" rule
- Meeting summary composition
- Per-source natural keys and NormalizationError on missing keys
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.sync.exceptions import NormalizationError
from app.sync.normalizers import (
    build_meeting_summary,
    flatten_participants,
    normalize_crm_company,
    normalize_github_repository,
    normalize_harvest_client,
    normalize_harvest_invoice,
    normalize_meeting_transcript,
    normalize_slack_channel,
    optional_bool,
    parse_date,
    parse_datetime,
    parse_decimal,
)


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


class TestCoercion:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("1250.50", Decimal("1250.50")),
            (100, Decimal("100")),
            ("  ", None),
            ("n/a", None),
            (None, None),
            (True, None),
            ("NaN", None),
        ],
    )
    def test_parse_decimal(self, raw, expected) -> None:
        assert parse_decimal(raw) == expected

    def test_parse_datetime_iso_zulu(self) -> None:
        parsed = parse_datetime("2024-03-01T10:15:00Z")
        assert parsed == datetime(2024, 3, 1, 10, 15, tzinfo=timezone.utc)

    def test_parse_datetime_epoch_millis(self) -> None:
        parsed = parse_datetime(1_700_000_000_000)
        assert parsed == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)

    def test_parse_datetime_naive_becomes_utc(self) -> None:
        assert parse_datetime("2024-03-01T10:15:00").tzinfo is not None

    def test_parse_datetime_garbage_is_none(self) -> None:
        assert parse_datetime("yesterday-ish") is None

    def test_parse_date(self) -> None:
        assert parse_date("2024-05-17") == date(2024, 5, 17)
        assert parse_date("2024-05-17T08:00:00Z") == date(2024, 5, 17)
        assert parse_date("17/05/2024") is None

    def test_optional_bool(self) -> None:
        assert optional_bool("true") is True
        assert optional_bool("no") is False
        assert optional_bool(None, default=True) is True


# ---------------------------------------------------------------------------
# Meeting participants and summary
# ---------------------------------------------------------------------------


class TestParticipants:
    def test_splits_email_lists_and_dedupes(self) -> None:
        raw = ["a@x.com, b@x.com", "a@x.com", "Acme, Inc."]
        assert flatten_participants(raw) == ["a@x.com", "b@x.com", "Acme, Inc."]

    def test_splits_when_fragment_matches_other_entry(self) -> None:
        raw = ["Dana Smith", "Dana Smith, Lee Park"]
        assert flatten_participants(raw) == ["Dana Smith", "Lee Park"]

    def test_single_string_and_none(self) -> None:
        assert flatten_participants("solo@x.com") == ["solo@x.com"]
        assert flatten_participants(None) == []

    def test_summary_sections(self) -> None:
        summary = build_meeting_summary(
            {"action_items": ["Send SOW", "Book demo"], "outline": "Intro", "keywords": []}
        )
        assert summary == "Action Items: Send SOW, Book demo\n\nOutline: Intro"

    def test_empty_summary_is_none(self) -> None:
        assert build_meeting_summary({}) is None
        assert build_meeting_summary("text") is None


# ---------------------------------------------------------------------------
# Per-source normalizers
# ---------------------------------------------------------------------------


class TestSourceNormalizers:
    def test_harvest_invoice(self) -> None:
        record = normalize_harvest_invoice(
            {
                "id": 901,
                "client": {"id": 55, "name": "Acme"},
                "number": "INV-7",
                "amount": "1200.00",
                "due_amount": "0",
                "state": "Paid",
                "issue_date": "2024-01-02",
                "paid_date": "2024-01-20",
                "updated_at": "2024-01-20T09:00:00Z",
            }
        )
        assert record.natural_key == "901"
        assert record.fields["harvest_client_id"] == "55"
        assert record.fields["state"] == "paid"
        assert record.fields["amount"] == Decimal("1200.00")
        assert record.fields["paid_date"] == date(2024, 1, 20)

    def test_harvest_invoice_without_id_raises(self) -> None:
        with pytest.raises(NormalizationError):
            normalize_harvest_invoice({"number": "INV-8"})

    def test_harvest_invoice_bad_amount_is_tolerated(self) -> None:
        record = normalize_harvest_invoice({"id": 1, "amount": "twelve"})
        assert record.fields["amount"] is None

    def test_harvest_client_name_fallback(self) -> None:
        record = normalize_harvest_client({"id": 4})
        assert record.fields["name"] == "Harvest client 4"
        assert record.fields["is_active"] is True

    def test_crm_company(self) -> None:
        record = normalize_crm_company(
            {"id": "77", "properties": {"name": "Acme", "domain": "acme.com", "hubspot_owner_id": "9"}}
        )
        assert record.natural_key == "77"
        assert record.fields == {"name": "Acme", "domain": "acme.com", "owner_id": "9"}

    def test_github_repository(self) -> None:
        record = normalize_github_repository(
            {
                "id": 3,
                "name": "api",
                "full_name": "acme/api",
                "owner": {"login": "acme"},
                "private": True,
                "pushed_at": "2024-02-01T00:00:00Z",
            }
        )
        assert record.fields["owner_login"] == "acme"
        assert record.fields["is_private"] is True
        assert record.fields["is_archived"] is False

    def test_github_repository_without_full_name_raises(self) -> None:
        with pytest.raises(NormalizationError):
            normalize_github_repository({"id": 3, "name": "api"})

    def test_meeting_transcript(self) -> None:
        record = normalize_meeting_transcript(
            {
                "id": "ff-1",
                "title": "ACME weekly",
                "date": 1_700_000_000_000,
                "duration": 31.6,
                "participants": ["a@x.com, b@x.com"],
                "summary": {"overview": "Went well", "keywords": ["pricing"]},
            }
        )
        assert record.fields["duration_minutes"] == 32
        assert record.fields["participants"] == ["a@x.com", "b@x.com"]
        assert record.fields["notes"] == "Went well"
        assert record.fields["summary"] == "Keywords: pricing"

    def test_slack_channel(self) -> None:
        record = normalize_slack_channel(
            {"id": "C1", "name": "general", "num_members": 12, "topic": {"value": "News"}}
        )
        assert record.fields["member_count"] == 12
        assert record.fields["topic"] == "News"
        assert record.fields["purpose"] is None

    def test_non_dict_payload_raises(self) -> None:
        with pytest.raises(NormalizationError):
            normalize_slack_channel(["C1"])
