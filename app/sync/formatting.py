"""
app/sync/formatting.py

Payload builders for the CRM: deal properties for invoices and HTML note
bodies for meetings and releases.
"""

from __future__ import annotations

import html
from datetime import datetime, time, timezone
from typing import Any

from app.config import HubSpotSettings
from db.models.harvest_invoice import HarvestInvoice
from db.models.meeting_note import MeetingNote

MAX_RELEASE_BODY_CHARS = 8000


def build_deal_properties(invoice: HarvestInvoice, settings: HubSpotSettings) -> dict[str, Any]:
    is_paid = (invoice.state or "").lower() == "paid"
    label = invoice.client_name or invoice.subject or "Harvest invoice"
    number = invoice.number or invoice.harvest_id

    properties: dict[str, Any] = {
        "dealname": f"{label} - Invoice #{number}",
        "pipeline": settings.deal_pipeline,
        "dealstage": settings.deal_stage_paid if is_paid else settings.deal_stage_open,
    }
    if invoice.amount is not None:
        properties["amount"] = str(invoice.amount)
    if invoice.currency:
        properties["deal_currency_code"] = invoice.currency
    close_date = invoice.paid_date if is_paid and invoice.paid_date else invoice.due_date
    if close_date is not None:
        properties["closedate"] = datetime.combine(close_date, time.min, tzinfo=timezone.utc).isoformat()
    if invoice.subject:
        properties["description"] = invoice.subject
    return properties


def format_duration(minutes: int) -> str:
    hours, remainder = divmod(minutes, 60)
    return f"{hours}h {remainder}m" if hours > 0 else f"{remainder}m"


def format_meeting_note(note: MeetingNote) -> str:
    parts: list[str] = []
    if note.title:
        parts.append(f"<p><strong>Meeting: {html.escape(note.title)}</strong></p>")
    if note.meeting_date:
        parts.append(f"<p><strong>Date:</strong> {note.meeting_date.strftime('%B %d, %Y %H:%M')} UTC</p>")
    if note.duration_minutes:
        parts.append(f"<p><strong>Duration:</strong> {format_duration(note.duration_minutes)}</p>")
    if note.participants:
        participants = ", ".join(html.escape(participant) for participant in note.participants)
        parts.append(f"<p><strong>Participants:</strong> {participants}</p>")
    if note.summary:
        parts.append(f"<p><strong>Summary:</strong><br>{_with_line_breaks(note.summary)}</p>")
    if note.notes:
        parts.append(f"<p><strong>Notes:</strong><br>{_with_line_breaks(note.notes)}</p>")
    if note.transcript_url:
        parts.append(f"<p><strong>Transcript:</strong> {html.escape(note.transcript_url)}</p>")
    return "".join(parts)


def format_release_note(
    *,
    repo_full_name: str,
    repo_url: str | None,
    release: dict[str, Any],
) -> str:
    tag = html.escape(str(release.get("tag_name") or "unknown"))
    name = release.get("name")
    release_url = release.get("html_url")
    published_at = release.get("published_at")
    body = str(release.get("body") or "").strip()

    safe_repo = html.escape(repo_full_name)
    repo_markup = f'<a href="{html.escape(repo_url)}">{safe_repo}</a>' if repo_url else safe_repo
    release_markup = f'<a href="{html.escape(str(release_url))}">{tag}</a>' if release_url else tag
    if name:
        release_markup = f"{release_markup} - {html.escape(str(name))}"

    parts = [
        "<p><strong>GitHub Release</strong></p>",
        f"<p><strong>Repo:</strong> {repo_markup}</p>",
        f"<p><strong>Release:</strong> {release_markup}</p>",
    ]
    if published_at:
        parts.append(f"<p><strong>Published:</strong> {html.escape(str(published_at))}</p>")
    if body:
        parts.append("<p><strong>Notes:</strong></p>")
        parts.append(f"<pre>{html.escape(truncate(body, MAX_RELEASE_BODY_CHARS))}</pre>")
    return "".join(parts)


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 3)] + "..."


def _with_line_breaks(text: str) -> str:
    return html.escape(text).replace("\n", "<br>")
