"""create mirrored record, mapping and sync run tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "harvest_companies",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("harvest_id", sa.String(length=64), nullable=False, comment="Harvest client id (natural key)"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("harvest_id", name="uq_harvest_companies_harvest_id"),
    )

    op.create_table(
        "crm_companies",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("company_id", sa.String(length=64), nullable=False, comment="HubSpot company id (natural key)"),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("domain", sa.String(length=255), nullable=True),
        sa.Column("owner_id", sa.String(length=64), nullable=True),
        sa.Column(
            "abbreviation",
            sa.String(length=16),
            nullable=True,
            comment="Operator-owned short code, never written by sync",
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", name="uq_crm_companies_company_id"),
        sa.UniqueConstraint("abbreviation", name="uq_crm_companies_abbreviation"),
    )

    op.create_table(
        "harvest_invoices",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("harvest_id", sa.String(length=64), nullable=False),
        sa.Column("harvest_client_id", sa.String(length=64), nullable=True),
        sa.Column("client_name", sa.String(length=255), nullable=True),
        sa.Column("number", sa.String(length=64), nullable=True),
        sa.Column("purchase_order", sa.String(length=255), nullable=True),
        sa.Column("subject", sa.String(length=500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("currency", sa.String(length=8), nullable=True),
        sa.Column("state", sa.String(length=32), nullable=True, comment="draft, open, paid, closed"),
        sa.Column("amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("due_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("tax", sa.Numeric(8, 3), nullable=True),
        sa.Column("tax_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("discount", sa.Numeric(8, 3), nullable=True),
        sa.Column("discount_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("issue_date", sa.Date(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column("payment_term", sa.String(length=64), nullable=True),
        sa.Column("source_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("source_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "payload",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Raw invoice payload as last observed",
        ),
        sa.Column("harvest_company_id", sa.Integer(), nullable=True),
        sa.Column("crm_deal_id", sa.String(length=64), nullable=True),
        sa.Column("deal_paid_synced", sa.Boolean(), nullable=False),
        sa.Column("deal_synced_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["harvest_company_id"], ["harvest_companies.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("harvest_id", name="uq_harvest_invoices_harvest_id"),
    )
    op.create_index("ix_harvest_invoices_state", "harvest_invoices", ["state"], unique=False)
    op.create_index(
        "ix_harvest_invoices_harvest_company_id",
        "harvest_invoices",
        ["harvest_company_id"],
        unique=False,
    )
    op.create_index("ix_harvest_invoices_crm_deal_id", "harvest_invoices", ["crm_deal_id"], unique=False)

    op.create_table(
        "github_repositories",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("github_id", sa.String(length=64), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("owner_login", sa.String(length=255), nullable=True),
        sa.Column("html_url", sa.String(length=500), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False),
        sa.Column("is_fork", sa.Boolean(), nullable=False),
        sa.Column("is_archived", sa.Boolean(), nullable=False),
        sa.Column("default_branch", sa.String(length=255), nullable=True),
        sa.Column("pushed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("github_id", name="uq_github_repositories_github_id"),
    )

    op.create_table(
        "meeting_notes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("meeting_id", sa.String(length=128), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("meeting_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("participants", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("transcript_url", sa.String(length=1000), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("crm_company_id", sa.Integer(), nullable=True),
        sa.Column("crm_note_id", sa.String(length=64), nullable=True),
        sa.Column("synced_to_crm_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["crm_company_id"], ["crm_companies.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("meeting_id", name="uq_meeting_notes_meeting_id"),
    )
    op.create_index("ix_meeting_notes_meeting_date", "meeting_notes", ["meeting_date"], unique=False)
    op.create_index("ix_meeting_notes_crm_company_id", "meeting_notes", ["crm_company_id"], unique=False)

    op.create_table(
        "slack_channels",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("channel_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_private", sa.Boolean(), nullable=False),
        sa.Column("is_archived", sa.Boolean(), nullable=False),
        sa.Column("member_count", sa.Integer(), nullable=True),
        sa.Column("topic", sa.Text(), nullable=True),
        sa.Column("purpose", sa.Text(), nullable=True),
        sa.Column("is_client", sa.Boolean(), nullable=False, comment="Operator flag, never written by sync"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("channel_id", name="uq_slack_channels_channel_id"),
    )

    op.create_table(
        "harvest_company_mappings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("crm_company_id", sa.Integer(), nullable=False),
        sa.Column("harvest_company_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["crm_company_id"], ["crm_companies.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["harvest_company_id"], ["harvest_companies.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "crm_company_id",
            "harvest_company_id",
            name="uq_harvest_company_mappings_crm_company_id_harvest_company_id",
        ),
    )
    op.create_index(
        "ix_harvest_company_mappings_harvest_company_id",
        "harvest_company_mappings",
        ["harvest_company_id"],
        unique=False,
    )

    op.create_table(
        "repository_company_mappings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("crm_company_id", sa.Integer(), nullable=False),
        sa.Column("github_repository_id", sa.Integer(), nullable=False),
        sa.Column("last_release_id", sa.String(length=64), nullable=True),
        sa.Column("last_release_tag_name", sa.String(length=255), nullable=True),
        sa.Column("last_release_published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_posted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["crm_company_id"], ["crm_companies.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["github_repository_id"], ["github_repositories.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "crm_company_id",
            "github_repository_id",
            name="uq_repository_company_mappings_crm_company_id_github_repository_id",
        ),
    )
    op.create_index(
        "ix_repository_company_mappings_github_repository_id",
        "repository_company_mappings",
        ["github_repository_id"],
        unique=False,
    )

    op.create_table(
        "sync_run_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "kind",
            sa.String(length=64),
            nullable=False,
            comment="harvest_invoices, crm_companies, release_notes, ...",
        ),
        sa.Column("trigger", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("found", sa.Integer(), nullable=False),
        sa.Column("created", sa.Integer(), nullable=False),
        sa.Column("updated", sa.Integer(), nullable=False),
        sa.Column("skipped", sa.Integer(), nullable=False),
        sa.Column("failed", sa.Integer(), nullable=False),
        sa.Column("actions_performed", sa.Integer(), nullable=False),
        sa.Column("errors", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sync_run_logs_kind", "sync_run_logs", ["kind"], unique=False)
    op.create_index("ix_sync_run_logs_status", "sync_run_logs", ["status"], unique=False)
    op.create_index("ix_sync_run_logs_started_at", "sync_run_logs", ["started_at"], unique=False)

    op.create_table(
        "sync_run_log_details",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("run_log_id", sa.Integer(), nullable=False),
        sa.Column(
            "subject_type",
            sa.String(length=64),
            nullable=False,
            comment="repository_mapping, harvest_invoice, ...",
        ),
        sa.Column("subject_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("actions_performed", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["run_log_id"], ["sync_run_logs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "run_log_id",
            "subject_type",
            "subject_id",
            name="uq_sync_run_log_details_run_log_id_subject_type_subject_id",
        ),
    )
    op.create_index("ix_sync_run_log_details_run_log_id", "sync_run_log_details", ["run_log_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_sync_run_log_details_run_log_id", table_name="sync_run_log_details")
    op.drop_table("sync_run_log_details")
    op.drop_index("ix_sync_run_logs_started_at", table_name="sync_run_logs")
    op.drop_index("ix_sync_run_logs_status", table_name="sync_run_logs")
    op.drop_index("ix_sync_run_logs_kind", table_name="sync_run_logs")
    op.drop_table("sync_run_logs")
    op.drop_index(
        "ix_repository_company_mappings_github_repository_id",
        table_name="repository_company_mappings",
    )
    op.drop_table("repository_company_mappings")
    op.drop_index("ix_harvest_company_mappings_harvest_company_id", table_name="harvest_company_mappings")
    op.drop_table("harvest_company_mappings")
    op.drop_table("slack_channels")
    op.drop_index("ix_meeting_notes_crm_company_id", table_name="meeting_notes")
    op.drop_index("ix_meeting_notes_meeting_date", table_name="meeting_notes")
    op.drop_table("meeting_notes")
    op.drop_table("github_repositories")
    op.drop_index("ix_harvest_invoices_crm_deal_id", table_name="harvest_invoices")
    op.drop_index("ix_harvest_invoices_harvest_company_id", table_name="harvest_invoices")
    op.drop_index("ix_harvest_invoices_state", table_name="harvest_invoices")
    op.drop_table("harvest_invoices")
    op.drop_table("crm_companies")
    op.drop_table("harvest_companies")
