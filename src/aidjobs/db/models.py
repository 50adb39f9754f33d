from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from aidjobs.db.base import Base, TimestampMixin, utcnow


def new_id() -> str:
    return str(uuid.uuid4())


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), default="", nullable=False)


class UserProgressFlags(TimestampMixin, Base):
    __tablename__ = "user_progress_flags"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    has_uploaded_cv: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_analyzed_cv: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_selected_job: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_written_cover_letter: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_published_job: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_applied_to_job: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_started_jd: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_submitted_jd_inputs: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    has_generated_jd: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    jd_generation_failed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class JobDraft(TimestampMixin, Base):
    __tablename__ = "job_drafts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    draft_status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False, index=True)
    ai_generated: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    generation_metadata: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    last_edited_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class PublishedJob(TimestampMixin, Base):
    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    organization_name: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    responsibilities: Mapped[str] = mapped_column(Text, default="", nullable=False)
    qualifications: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="published", nullable=False, index=True)
    source_draft_id: Mapped[str | None] = mapped_column(
        ForeignKey("job_drafts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    ai_generated: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    generation_metadata: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ErrorLog(Base):
    __tablename__ = "error_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    error_type: Mapped[str] = mapped_column(String(120), nullable=False)
    details: Mapped[str] = mapped_column(Text, default="", nullable=False)
    source: Mapped[str] = mapped_column(String(120), default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
