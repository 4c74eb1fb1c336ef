"""
Run one sync kind (or all record syncs) from the CLI.
"""

from __future__ import annotations

import argparse
import json
import logging

from app.domain.sync import SyncKind
from app.services.invoice_deal_service import get_invoice_deal_service
from app.services.release_note_service import get_release_note_service
from app.services.sync_service import get_sync_service
from db.session import SessionLocal

_CHOICES = [*SyncKind.RECORD_KINDS, *SyncKind.MAPPING_KINDS, "all"]


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a synchronization job.")
    parser.add_argument("kind", choices=_CHOICES, help="Sync kind to run.")
    parser.add_argument(
        "--dry-run",
        dest="dry_run",
        action="store_true",
        help="release_notes only: report notes without posting them.",
    )
    parser.add_argument(
        "--mapping-id",
        dest="mapping_id",
        type=int,
        default=None,
        help="release_notes only: process a single repository mapping.",
    )
    parser.add_argument(
        "--include-paid",
        dest="include_paid",
        action="store_true",
        help="invoice_deals only: also refresh deals already marked paid.",
    )
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    with SessionLocal() as db:
        if args.kind == SyncKind.RELEASE_NOTES:
            result = get_release_note_service().sync_release_notes(
                db,
                mapping_id=args.mapping_id,
                dry_run=args.dry_run,
            )
            payload = [_mapping_payload(result)]
        elif args.kind == SyncKind.INVOICE_DEALS:
            result = get_invoice_deal_service().sync_invoice_deals(
                db,
                skip_paid_and_deal_paid=not args.include_paid,
            )
            payload = [_mapping_payload(result)]
        elif args.kind == "all":
            payload = [_record_payload(result) for result in get_sync_service().run_all(db)]
        else:
            payload = [_record_payload(get_sync_service().run_kind(db, args.kind))]

    print(json.dumps(payload, indent=2))
    return 0 if all(item["status"] == "completed" for item in payload) else 1


def _record_payload(result) -> dict:
    return {
        "kind": result.kind,
        "status": result.status,
        "run_log_id": result.run_log_id,
        "found": result.found,
        "created": result.created,
        "updated": result.updated,
        "skipped": result.skipped,
        "failed": result.failed,
        "actions_performed": result.actions_performed,
        "errors": list(result.errors),
    }


def _mapping_payload(result) -> dict:
    return {
        "kind": result.kind,
        "status": result.status,
        "run_log_id": result.run_log_id,
        "dry_run": result.dry_run,
        "processed": result.mappings_processed,
        "actions_performed": result.actions_performed,
        "skipped": result.skipped,
        "failed": result.failed,
        "errors": list(result.errors),
    }


if __name__ == "__main__":
    raise SystemExit(main())
