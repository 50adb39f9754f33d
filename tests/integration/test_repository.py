from __future__ import annotations

from aidjobs.core.drafts import DraftPersistenceWorkflow
from aidjobs.core.progress import ProgressFlagSynchronizer
from aidjobs.core.sections import DraftSectionModel
from aidjobs.db.models import User, UserProgressFlags
from aidjobs.db.repositories import Repository
from aidjobs.db.session import SessionLocal


def test_progress_record_lifecycle_against_database() -> None:
    with SessionLocal() as db:
        repo = Repository(db)
        repo.create_user("u-1", email="hr@hoperelief.org")
        sync = ProgressFlagSynchronizer(repo, "u-1")

        assert sync.ensure_record() is True
        assert sync.ensure_record() is True
        assert db.query(UserProgressFlags).count() == 1

        assert sync.update_flags({"has_started_jd": True, "has_submitted_jd_inputs": True}) is True

        fresh = ProgressFlagSynchronizer(Repository(db), "u-1").fetch()
        assert fresh.has_started_jd is True
        assert fresh.has_submitted_jd_inputs is True
        assert fresh.has_generated_jd is False


def test_missing_user_gets_no_progress_row() -> None:
    with SessionLocal() as db:
        sync = ProgressFlagSynchronizer(Repository(db), "nobody")

        assert sync.ensure_record() is False
        assert sync.fetch().has_published_job is False
        assert db.query(UserProgressFlags).count() == 0


def test_update_matches_no_row_for_other_user() -> None:
    with SessionLocal() as db:
        repo = Repository(db)
        repo.create_user("u-1")
        ProgressFlagSynchronizer(repo, "u-1").ensure_record()

        assert repo.update_progress_flags("u-2", {"has_started_jd": True}) == 0


def test_deleting_user_cascades_progress_flags() -> None:
    with SessionLocal() as db:
        repo = Repository(db)
        repo.create_user("u-1")
        ProgressFlagSynchronizer(repo, "u-1").ensure_record()

        db.delete(db.get(User, "u-1"))
        db.commit()

        assert db.query(UserProgressFlags).count() == 0


def test_drafts_are_scoped_by_owner_and_publish_round_trip() -> None:
    with SessionLocal() as db:
        repo = Repository(db)
        repo.create_user("owner")
        repo.create_user("intruder")

        sections = DraftSectionModel.from_text("# Job Title\n\nM&E Officer\n\n# About the Organization\n\nAidNet")
        workflow = DraftPersistenceWorkflow(
            repo, "owner", sections, progress=ProgressFlagSynchronizer(repo, "owner")
        )
        result = workflow.publish()

        assert result.ok is True
        assert repo.get_draft(result.draft_id, user_id="intruder") is None

        draft = repo.get_draft(result.draft_id, user_id="owner")
        assert draft.draft_status == "ready"
        assert draft.title == "M&E Officer"
        assert draft.generation_metadata["schema_version"] == 1

        job = repo.get_published_job(result.job_id, user_id="owner")
        assert job.organization_name == "AidNet"
        assert job.source_draft_id == draft.id
        assert job.generation_metadata["published_from_editor"] is True
        assert repo.list_published_jobs("intruder") == []

        assert ProgressFlagSynchronizer(repo, "owner").fetch().has_published_job is True


def test_stored_draft_reloads_renamed_sections_for_publish() -> None:
    with SessionLocal() as db:
        repo = Repository(db)
        repo.create_user("owner")

        sections = DraftSectionModel.from_text("# Responsibilities\n\nLead the grants team")
        sections.set_title("responsibilities", "What you will do")
        saved = DraftPersistenceWorkflow(repo, "owner", sections).save()
        assert saved.ok is True

    with SessionLocal() as db:
        repo = Repository(db)
        workflow = DraftPersistenceWorkflow.load(
            repo, "owner", saved.draft_id, progress=ProgressFlagSynchronizer(repo, "owner")
        )
        assert workflow.sections.get("responsibilities").title == "What you will do"

        result = workflow.publish()

        assert result.ok is True
        job = repo.get_published_job(result.job_id, user_id="owner")
        assert job.responsibilities == "Lead the grants team"


def test_error_log_rows() -> None:
    with SessionLocal() as db:
        repo = Repository(db)
        repo.log_error(user_id="u-1", error_type="ai_model_failure", details="HTTP 429", source="ai_model_fallback")
        repo.log_error(user_id=None, error_type="jd_generation_failed", details="down", source="jd_generation")

        assert [row.error_type for row in repo.list_error_logs()] == ["jd_generation_failed", "ai_model_failure"]
        assert len(repo.list_error_logs(user_id="u-1")) == 1
