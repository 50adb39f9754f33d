from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from aidjobs.db.models import ErrorLog, JobDraft, PublishedJob, User, UserProgressFlags
from aidjobs.types import PROGRESS_FLAG_NAMES, GenerationMetadata


def metadata_payload(value: GenerationMetadata | dict[str, Any] | None) -> dict[str, Any]:
    if value is None:
        return GenerationMetadata().model_dump(mode="json")
    if isinstance(value, GenerationMetadata):
        return value.model_dump(mode="json")
    return GenerationMetadata.model_validate(value).model_dump(mode="json")


class Repository:
    """Relational gateway; every query is scoped by the owning user id."""

    def __init__(self, session: Session):
        self.session = session

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def create_user(self, user_id: str, email: str = "") -> User:
        existing = self.session.get(User, user_id)
        if existing:
            return existing
        user = User(id=user_id, email=email)
        self.session.add(user)
        self._commit()
        self.session.refresh(user)
        return user

    def get_user(self, user_id: str) -> User | None:
        return self.session.get(User, user_id)

    def get_progress_flags(self, user_id: str) -> UserProgressFlags | None:
        return self.session.scalar(
            select(UserProgressFlags).where(UserProgressFlags.user_id == user_id)
        )

    def create_progress_flags(self, user_id: str, values: dict[str, bool]) -> UserProgressFlags:
        row = UserProgressFlags(user_id=user_id, **values)
        self.session.add(row)
        self._commit()
        self.session.refresh(row)
        return row

    def read_progress_flags(self, user_id: str) -> dict[str, bool]:
        row = self.get_progress_flags(user_id)
        if row is None:
            raise LookupError(f"progress flags for user {user_id} not found")
        self.session.refresh(row)
        return {name: bool(getattr(row, name)) for name in PROGRESS_FLAG_NAMES}

    def update_progress_flags(self, user_id: str, values: dict[str, bool]) -> int:
        statement = (
            update(UserProgressFlags)
            .where(UserProgressFlags.user_id == user_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        try:
            result = self.session.execute(statement)
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self._commit()
        return result.rowcount or 0

    def insert_draft(self, *, user_id: str, values: dict[str, Any]) -> JobDraft:
        payload = dict(values)
        payload["generation_metadata"] = metadata_payload(payload.get("generation_metadata"))
        draft = JobDraft(user_id=user_id, **payload)
        self.session.add(draft)
        self._commit()
        self.session.refresh(draft)
        return draft

    def update_draft(self, draft_id: str, *, user_id: str, values: dict[str, Any]) -> JobDraft | None:
        draft = self.get_draft(draft_id, user_id=user_id)
        if draft is None:
            return None

        payload = dict(values)
        if "generation_metadata" in payload:
            payload["generation_metadata"] = metadata_payload(payload["generation_metadata"])
        for key, value in payload.items():
            setattr(draft, key, value)

        self._commit()
        self.session.refresh(draft)
        return draft

    def get_draft(self, draft_id: str, *, user_id: str) -> JobDraft | None:
        return self.session.scalar(
            select(JobDraft).where(and_(JobDraft.id == draft_id, JobDraft.user_id == user_id))
        )

    def list_drafts(self, user_id: str, limit: int = 50) -> list[JobDraft]:
        statement = (
            select(JobDraft)
            .where(JobDraft.user_id == user_id)
            .order_by(JobDraft.last_edited_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(statement).all())

    def set_draft_status(self, draft_id: str, *, user_id: str, status: str) -> bool:
        draft = self.get_draft(draft_id, user_id=user_id)
        if draft is None:
            return False
        draft.draft_status = status
        draft.last_edited_at = datetime.now(UTC)
        self._commit()
        return True

    def insert_published_job(self, *, user_id: str, values: dict[str, Any]) -> PublishedJob:
        payload = dict(values)
        payload["generation_metadata"] = metadata_payload(payload.get("generation_metadata"))
        job = PublishedJob(user_id=user_id, **payload)
        self.session.add(job)
        self._commit()
        self.session.refresh(job)
        return job

    def get_published_job(self, job_id: str, *, user_id: str) -> PublishedJob | None:
        return self.session.scalar(
            select(PublishedJob).where(and_(PublishedJob.id == job_id, PublishedJob.user_id == user_id))
        )

    def get_job_for_draft(self, draft_id: str, *, user_id: str) -> PublishedJob | None:
        statement = (
            select(PublishedJob)
            .where(and_(PublishedJob.source_draft_id == draft_id, PublishedJob.user_id == user_id))
            .order_by(PublishedJob.created_at.desc())
        )
        return self.session.scalar(statement)

    def list_published_jobs(self, user_id: str, limit: int = 50) -> list[PublishedJob]:
        statement = (
            select(PublishedJob)
            .where(PublishedJob.user_id == user_id)
            .order_by(PublishedJob.created_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(statement).all())

    def log_error(
        self,
        *,
        user_id: str | None,
        error_type: str,
        details: str,
        source: str,
    ) -> ErrorLog:
        entry = ErrorLog(user_id=user_id, error_type=error_type, details=details, source=source)
        self.session.add(entry)
        self._commit()
        self.session.refresh(entry)
        return entry

    def list_error_logs(self, user_id: str | None = None, limit: int = 50) -> list[ErrorLog]:
        statement = select(ErrorLog).order_by(ErrorLog.id.desc()).limit(limit)
        if user_id is not None:
            statement = statement.where(ErrorLog.user_id == user_id)
        return list(self.session.scalars(statement).all())
