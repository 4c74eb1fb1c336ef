"""
app/services/suggestion_service.py

Operator-facing helpers for linking meeting notes to CRM companies.

Abbreviations are short company codes (2-5 characters) that meeting titles
often start with, e.g. "ACME weekly sync". Suggestions are read-only; a
link is only written when the operator applies one.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.sync.exceptions import RecordNotFoundError
from db.models.crm_company import CrmCompany
from db.models.meeting_note import MeetingNote

logger = logging.getLogger(__name__)

MIN_ABBREVIATION_LENGTH = 2
MAX_ABBREVIATION_LENGTH = 5

_COMPANY_SUFFIX_RE = re.compile(
    r"\s+(Inc|LLC|Ltd|Corp|Corporation|Company|Co|Group|Partners|Associates"
    r"|Solutions|Services|Systems|Technologies|Tech)\.?\s*$",
    re.IGNORECASE,
)
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")


def generate_abbreviation(name: str | None) -> str:
    """
    Base abbreviation for a company name.

    Multi-word names use initials; single words use the whole word (up to 5
    letters), the first 4 letters (up to 8) or roughly half the word.
    """

    if not name:
        return ""
    cleaned = _COMPANY_SUFFIX_RE.sub("", name).strip()
    words = [word for word in cleaned.split() if word]
    if not words:
        return ""

    if len(words) >= 2:
        initials = "".join(word[0] for word in words).upper()[:MAX_ABBREVIATION_LENGTH]
        if len(initials) >= MIN_ABBREVIATION_LENGTH:
            return initials

    word = words[0]
    if len(word) <= 5:
        return word.upper()
    if len(word) <= 8:
        return word[:4].upper()
    return word[: min(5, max(3, len(word) // 2))].upper()


def generate_unique_abbreviation(name: str | None, existing: set[str]) -> str:
    """
    Abbreviation not present in `existing`, or "" when none can be derived.

    Collisions try numbered variants (ABC2, ABC3, ...), then shorter
    prefixes, then two-letter prefixes with zero-padded numbers.
    """

    base = generate_abbreviation(name)
    if not base:
        fallback = _NON_ALNUM_RE.sub("", name or "")[:MAX_ABBREVIATION_LENGTH].upper()
        if len(fallback) >= MIN_ABBREVIATION_LENGTH and fallback not in existing:
            return fallback
        return ""

    if base not in existing:
        return base

    stem = base[:3]
    for number in range(2, 100):
        variant = f"{stem}{number}"
        if len(variant) <= MAX_ABBREVIATION_LENGTH and variant not in existing:
            return variant

    for length in range(len(base) - 1, MIN_ABBREVIATION_LENGTH - 1, -1):
        if base[:length] not in existing:
            return base[:length]

    prefix = base[:2]
    for number in range(1, 1000):
        variant = f"{prefix}{number:02d}"
        if len(variant) <= MAX_ABBREVIATION_LENGTH and variant not in existing:
            return variant
    return ""


@dataclass
class AbbreviationResult:
    updated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


def assign_abbreviations(db: Session) -> AbbreviationResult:
    """Fill the abbreviation of every CRM company that has none."""

    companies = list(db.scalars(select(CrmCompany).order_by(CrmCompany.id.asc())).all())
    existing = {company.abbreviation for company in companies if company.abbreviation}
    result = AbbreviationResult()

    for company in companies:
        if company.abbreviation:
            continue
        name = company.name or company.company_id
        abbreviation = generate_unique_abbreviation(name, existing)
        if len(abbreviation) < MIN_ABBREVIATION_LENGTH:
            result.skipped += 1
            result.errors.append(f"Could not generate abbreviation for {name}")
            continue

        company.abbreviation = abbreviation
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            result.skipped += 1
            result.errors.append(f"Abbreviation {abbreviation} for {name} is already taken")
            continue
        existing.add(abbreviation)
        result.updated += 1

    logger.info("Abbreviations assigned updated=%s skipped=%s", result.updated, result.skipped)
    return result


def clear_abbreviations(db: Session) -> int:
    companies = list(db.scalars(select(CrmCompany).where(CrmCompany.abbreviation.is_not(None))).all())
    for company in companies:
        company.abbreviation = None
    db.commit()
    return len(companies)


def title_prefix(title: str | None) -> str | None:
    if not title:
        return None
    first_word = title.strip().split(maxsplit=1)
    if not first_word:
        return None
    token = _NON_ALNUM_RE.sub("", first_word[0]).upper()
    return token or None


def suggest_companies(db: Session, meeting_note_id: int) -> list[CrmCompany]:
    """
    CRM companies whose abbreviation equals the first word of the meeting
    title (case-insensitive, punctuation ignored).
    """

    note = db.get(MeetingNote, meeting_note_id)
    if note is None:
        raise RecordNotFoundError(f"Meeting note with ID {meeting_note_id} not found")

    prefix = title_prefix(note.title)
    if prefix is None:
        return []
    companies = db.scalars(
        select(CrmCompany).where(CrmCompany.abbreviation.is_not(None)).order_by(CrmCompany.id.asc())
    ).all()
    return [company for company in companies if company.abbreviation.upper() == prefix]


def link_meeting_note(db: Session, meeting_note_id: int, crm_company_id: int | None) -> MeetingNote:
    """Set (or clear, with None) the CRM company of a meeting note."""

    note = db.get(MeetingNote, meeting_note_id)
    if note is None:
        raise RecordNotFoundError(f"Meeting note with ID {meeting_note_id} not found")
    if crm_company_id is not None and db.get(CrmCompany, crm_company_id) is None:
        raise RecordNotFoundError(f"CRM company with ID {crm_company_id} not found")

    note.crm_company_id = crm_company_id
    db.commit()
    db.refresh(note)
    logger.info("Meeting note linked meeting_note_id=%s crm_company_id=%s", meeting_note_id, crm_company_id)
    return note
