"""Initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

PROGRESS_FLAG_COLUMNS = (
    "has_uploaded_cv",
    "has_analyzed_cv",
    "has_selected_job",
    "has_written_cover_letter",
    "has_published_job",
    "has_applied_to_job",
    "has_started_jd",
    "has_submitted_jd_inputs",
    "has_generated_jd",
    "jd_generation_failed",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, server_default=""),
        *_timestamps(),
    )

    op.create_table(
        "user_progress_flags",
        sa.Column(
            "user_id",
            sa.String(length=64),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        *[
            sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.false())
            for name in PROGRESS_FLAG_COLUMNS
        ],
        *_timestamps(),
    )

    op.create_table(
        "job_drafts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("draft_status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("ai_generated", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("generation_metadata", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("last_edited_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_job_drafts_user_id", "job_drafts", ["user_id"], unique=False)
    op.create_index("ix_job_drafts_draft_status", "job_drafts", ["draft_status"], unique=False)

    op.create_table(
        "jobs",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("organization_name", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("responsibilities", sa.Text(), nullable=False, server_default=""),
        sa.Column("qualifications", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="published"),
        sa.Column(
            "source_draft_id",
            sa.String(length=36),
            sa.ForeignKey("job_drafts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("ai_generated", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("generation_metadata", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_jobs_user_id", "jobs", ["user_id"], unique=False)
    op.create_index("ix_jobs_status", "jobs", ["status"], unique=False)
    op.create_index("ix_jobs_source_draft_id", "jobs", ["source_draft_id"], unique=False)

    op.create_table(
        "error_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("error_type", sa.String(length=120), nullable=False),
        sa.Column("details", sa.Text(), nullable=False, server_default=""),
        sa.Column("source", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_error_logs_user_id", "error_logs", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_error_logs_user_id", table_name="error_logs")
    op.drop_table("error_logs")
    op.drop_index("ix_jobs_source_draft_id", table_name="jobs")
    op.drop_index("ix_jobs_status", table_name="jobs")
    op.drop_index("ix_jobs_user_id", table_name="jobs")
    op.drop_table("jobs")
    op.drop_index("ix_job_drafts_draft_status", table_name="job_drafts")
    op.drop_index("ix_job_drafts_user_id", table_name="job_drafts")
    op.drop_table("job_drafts")
    op.drop_table("user_progress_flags")
    op.drop_table("users")
