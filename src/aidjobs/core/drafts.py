"""Save-as-draft and publish for a job-description draft.

States: ``unsaved`` (no draft row) -> ``draft`` -> ``published`` (a job row
references the draft). Publish always runs against a persisted draft and its
steps run in a fixed order: insert job, mark draft ready, set the
``has_published_job`` milestone. A failed step skips the rest.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from aidjobs.core.progress import ProgressFlagSynchronizer
from aidjobs.core.sections import DraftSectionModel
from aidjobs.types import DraftState, GenerationMetadata, SectionOrderEntry

logger = logging.getLogger(__name__)

UNTITLED_JOB = "Untitled Job"

NoticeLevel = Literal["success", "info", "warning", "error"]
FailureKind = Literal["busy", "gateway", "not_found"]


@dataclass(slots=True)
class Notice:
    level: NoticeLevel
    message: str


@dataclass(slots=True)
class PersistenceResult:
    ok: bool
    draft_id: str | None = None
    job_id: str | None = None
    failure: FailureKind | None = None
    message: str = ""


@dataclass(slots=True)
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


_OPERATION_LOCKS: dict[str, _LockEntry] = {}
_OPERATION_LOCKS_GUARD = threading.Lock()


@contextmanager
def operation_slot(key: str) -> Iterator[bool]:
    """Try to claim the per-draft operation lock without blocking.

    Yields whether the lock was acquired. The registry entry is dropped once
    no caller references it.
    """
    with _OPERATION_LOCKS_GUARD:
        entry = _OPERATION_LOCKS.setdefault(key, _LockEntry())
        entry.users += 1

    acquired = entry.lock.acquire(blocking=False)
    try:
        yield acquired
    finally:
        if acquired:
            entry.lock.release()
        with _OPERATION_LOCKS_GUARD:
            entry.users -= 1
            if entry.users == 0:
                _OPERATION_LOCKS.pop(key, None)


def _stored_section_order(draft: Any) -> list[SectionOrderEntry]:
    raw = draft.generation_metadata
    if isinstance(raw, GenerationMetadata):
        return raw.section_order
    try:
        return GenerationMetadata.model_validate(raw or {}).section_order
    except ValidationError:
        logger.warning("Draft %s has unreadable generation metadata; parsing its text", draft.id)
        return []


class DraftPersistenceWorkflow:
    def __init__(
        self,
        repo: Any,
        user_id: str,
        sections: DraftSectionModel,
        *,
        progress: ProgressFlagSynchronizer | None = None,
        draft_id: str | None = None,
        notifier: Callable[[Notice], None] | None = None,
    ):
        self.repo = repo
        self.user_id = user_id
        self.sections = sections
        self.progress = progress
        self.draft_id = draft_id
        self.job_id: str | None = None
        self.notices: list[Notice] = []
        self._notifier = notifier
        self._lock_key = draft_id or f"unsaved:{uuid.uuid4().hex}"

    @classmethod
    def load(
        cls,
        repo: Any,
        user_id: str,
        draft_id: str,
        *,
        progress: ProgressFlagSynchronizer | None = None,
        notifier: Callable[[Notice], None] | None = None,
    ) -> "DraftPersistenceWorkflow | None":
        draft = repo.get_draft(draft_id, user_id=user_id)
        if draft is None:
            return None

        sections = DraftSectionModel.restore(draft.description, _stored_section_order(draft))
        workflow = cls(
            repo,
            user_id,
            sections,
            progress=progress,
            draft_id=draft.id,
            notifier=notifier,
        )
        job = repo.get_job_for_draft(draft.id, user_id=user_id)
        if job is not None:
            workflow.job_id = job.id
        return workflow

    @property
    def state(self) -> DraftState:
        if self.job_id:
            return "published"
        if self.draft_id:
            return "draft"
        return "unsaved"

    @property
    def lock_key(self) -> str:
        return self._lock_key

    def derive_title(self) -> str:
        section = self.sections.find_type("title")
        title = section.content.strip() if section else ""
        return title or UNTITLED_JOB

    def section_content(self, section_type: str) -> str:
        section = self.sections.find_type(section_type)
        return section.content if section else ""

    def build_metadata(self, *, published_at: datetime | None = None) -> GenerationMetadata:
        return GenerationMetadata(
            sections_count=len(self.sections.sections),
            generated_at=datetime.now(UTC),
            published_at=published_at,
            published_from_editor=published_at is not None,
            section_order=self.sections.section_order(),
            section_versions=self.sections.section_versions(),
        )

    def save(self) -> PersistenceResult:
        with operation_slot(self.lock_key) as acquired:
            if not acquired:
                return self._busy("save")
            return self._save(announce=True)

    def publish(self) -> PersistenceResult:
        with operation_slot(self.lock_key) as acquired:
            if not acquired:
                return self._busy("publish")
            return self._publish()

    def _save(self, *, announce: bool) -> PersistenceResult:
        now = datetime.now(UTC)
        values = {
            "title": self.derive_title(),
            "description": self.sections.compile(),
            "draft_status": "draft",
            "ai_generated": True,
            "generation_metadata": self.build_metadata(),
            "last_edited_at": now,
        }

        try:
            if self.draft_id:
                draft = self.repo.update_draft(self.draft_id, user_id=self.user_id, values=values)
            else:
                draft = self.repo.insert_draft(user_id=self.user_id, values=values)
        except SQLAlchemyError:
            logger.exception("Error saving draft user_id=%s draft_id=%s", self.user_id, self.draft_id)
            self._notify("error", "Failed to save draft. Please try again.")
            return PersistenceResult(
                ok=False, draft_id=self.draft_id, failure="gateway", message="Failed to save draft"
            )

        if draft is None:
            logger.error("Draft %s not found for user %s", self.draft_id, self.user_id)
            self._notify("error", "Draft not found. It may have been removed.")
            return PersistenceResult(
                ok=False, draft_id=self.draft_id, failure="not_found", message="Draft not found"
            )

        self.draft_id = draft.id
        logger.info("Saved draft %s for user %s", draft.id, self.user_id)
        if announce:
            self._notify("success", "Draft saved successfully!")
        return PersistenceResult(ok=True, draft_id=draft.id, job_id=self.job_id, message="Draft saved")

    def _publish(self) -> PersistenceResult:
        if not self.draft_id:
            saved = self._save(announce=False)
            if not saved.ok:
                self._notify("error", "Failed to save draft before publishing. Please try again.")
                return PersistenceResult(
                    ok=False,
                    failure=saved.failure,
                    message="Failed to save draft before publishing",
                )
        draft_id = self.draft_id

        organization = self.section_content("organization")
        published_at = datetime.now(UTC)
        values = {
            "title": self.derive_title(),
            "description": self.sections.compile(),
            "organization_name": organization.split("\n")[0].strip() if organization else "",
            "responsibilities": self.section_content("responsibilities"),
            "qualifications": self.section_content("qualifications"),
            "status": "published",
            "source_draft_id": draft_id,
            "ai_generated": True,
            "generation_metadata": self.build_metadata(published_at=published_at),
            "published_at": published_at,
        }

        try:
            job = self.repo.insert_published_job(user_id=self.user_id, values=values)
        except SQLAlchemyError:
            logger.exception("Error publishing draft %s for user %s", draft_id, self.user_id)
            self._notify("error", "Failed to publish job. Please try again.")
            return PersistenceResult(
                ok=False, draft_id=draft_id, failure="gateway", message="Failed to publish job"
            )
        self.job_id = job.id

        try:
            marked = self.repo.set_draft_status(draft_id, user_id=self.user_id, status="ready")
        except SQLAlchemyError:
            logger.exception("Error marking draft %s ready", draft_id)
            marked = False
        if not marked:
            self._notify("warning", "Job published, but the draft status could not be updated.")
            return PersistenceResult(
                ok=False,
                draft_id=draft_id,
                job_id=job.id,
                failure="gateway",
                message="Draft status update failed",
            )

        if self.progress is not None and not self.progress.update_flag("has_published_job", True):
            logger.warning("Published job %s but could not set has_published_job", job.id)

        logger.info("Published job %s from draft %s for user %s", job.id, draft_id, self.user_id)
        self._notify("success", "Job published successfully! It's now live and accepting applications.")
        return PersistenceResult(ok=True, draft_id=draft_id, job_id=job.id, message="Job published")

    def _busy(self, operation: str) -> PersistenceResult:
        logger.warning("Rejected %s for %s: another operation is in flight", operation, self.lock_key)
        self._notify("warning", "Another save or publish is already in progress.")
        return PersistenceResult(
            ok=False,
            draft_id=self.draft_id,
            job_id=self.job_id,
            failure="busy",
            message=f"{operation} already in progress",
        )

    def _notify(self, level: NoticeLevel, message: str) -> None:
        notice = Notice(level=level, message=message)
        self.notices.append(notice)
        if self._notifier is not None:
            self._notifier(notice)
