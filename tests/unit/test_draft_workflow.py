from __future__ import annotations

from aidjobs.core import drafts
from aidjobs.core.drafts import DraftPersistenceWorkflow, UNTITLED_JOB, operation_slot
from aidjobs.core.progress import ProgressFlagSynchronizer
from aidjobs.core.sections import DraftSectionModel
from aidjobs.types import GenerationMetadata
from fakes import FakeGateway

TEXT = """# Job Title

Program Officer

# About the Organization

Hope Relief International
Emergency response in East Africa.

# Key Responsibilities

- Coordinate field programs

# Qualifications and Competencies

- Degree in development studies
"""

PUBLISH_STEPS = {"insert_draft", "insert_published_job", "set_draft_status", "update_progress_flags"}


def _workflow(gateway: FakeGateway, **kwargs) -> DraftPersistenceWorkflow:
    return DraftPersistenceWorkflow(
        gateway,
        "user-1",
        DraftSectionModel.from_text(TEXT),
        progress=ProgressFlagSynchronizer(gateway, "user-1"),
        **kwargs,
    )


def _steps(gateway: FakeGateway) -> list[str]:
    return [name for name in gateway.call_names() if name in PUBLISH_STEPS]


def test_save_inserts_then_updates_same_draft() -> None:
    gateway = FakeGateway()
    workflow = _workflow(gateway)
    assert workflow.state == "unsaved"

    first = workflow.save()
    second = workflow.save()

    assert first.ok and second.ok
    assert first.draft_id == second.draft_id == "draft-1"
    assert workflow.state == "draft"
    assert _steps(gateway) == ["insert_draft"]
    assert "update_draft" in gateway.call_names()

    values = gateway.calls[0][1]
    assert values["title"] == "Program Officer"
    assert values["draft_status"] == "draft"
    assert values["description"] == workflow.sections.compile()
    assert isinstance(values["generation_metadata"], GenerationMetadata)
    assert values["generation_metadata"].sections_count == len(workflow.sections.sections)


def test_title_falls_back_when_title_section_is_blank() -> None:
    gateway = FakeGateway()
    workflow = _workflow(gateway)
    workflow.sections.set_content("job-title", "   ")

    assert workflow.derive_title() == UNTITLED_JOB


def test_publish_without_draft_saves_first_and_runs_steps_in_order() -> None:
    gateway = FakeGateway()
    workflow = _workflow(gateway)

    result = workflow.publish()

    assert result.ok is True
    assert result.draft_id == "draft-1"
    assert result.job_id == "job-1"
    assert workflow.state == "published"
    assert _steps(gateway) == [
        "insert_draft",
        "insert_published_job",
        "set_draft_status",
        "update_progress_flags",
    ]
    flag_updates = [payload for name, payload in gateway.calls if name == "update_progress_flags"]
    assert flag_updates == [{"has_published_job": True}]
    assert gateway.drafts["draft-1"].draft_status == "ready"


def test_publish_extracts_job_fields() -> None:
    gateway = FakeGateway()
    workflow = _workflow(gateway)

    workflow.publish()

    job = gateway.jobs["job-1"]
    assert job.title == "Program Officer"
    assert job.organization_name == "Hope Relief International"
    assert job.responsibilities == "- Coordinate field programs"
    assert job.qualifications == "- Degree in development studies"
    assert job.source_draft_id == "draft-1"
    assert job.generation_metadata.published_from_editor is True
    assert job.generation_metadata.published_at is not None


def test_failed_insert_short_circuits_remaining_steps() -> None:
    gateway = FakeGateway(fail={"insert_published_job"})
    workflow = _workflow(gateway)

    result = workflow.publish()

    assert result.ok is False
    assert result.failure == "gateway"
    assert result.job_id is None
    assert _steps(gateway) == ["insert_draft", "insert_published_job"]
    assert workflow.notices[-1].level == "error"


def test_failed_save_aborts_publish() -> None:
    gateway = FakeGateway(fail={"insert_draft"})
    workflow = _workflow(gateway)

    result = workflow.publish()

    assert result.ok is False
    assert workflow.state == "unsaved"
    assert _steps(gateway) == ["insert_draft"]


def test_failed_status_update_reports_partial_publish() -> None:
    gateway = FakeGateway(fail={"set_draft_status"})
    workflow = _workflow(gateway)

    result = workflow.publish()

    assert result.ok is False
    assert result.job_id == "job-1"
    assert "update_progress_flags" not in gateway.call_names()


def test_failed_update_keeps_previous_draft_id() -> None:
    gateway = FakeGateway()
    workflow = _workflow(gateway)
    workflow.save()
    gateway.fail.add("update_draft")

    result = workflow.save()

    assert result.ok is False
    assert result.failure == "gateway"
    assert workflow.draft_id == "draft-1"


def test_update_of_missing_draft_reports_not_found() -> None:
    gateway = FakeGateway()
    workflow = _workflow(gateway, draft_id="draft-404")

    result = workflow.save()

    assert result.ok is False
    assert result.failure == "not_found"


def test_concurrent_operation_is_rejected_as_busy() -> None:
    gateway = FakeGateway()
    workflow = _workflow(gateway)
    with operation_slot(workflow.lock_key) as held:
        assert held
        result = workflow.publish()

    assert result.ok is False
    assert result.failure == "busy"
    assert gateway.calls == []
    assert workflow.save().ok is True


def test_lock_key_is_stable_across_first_save() -> None:
    gateway = FakeGateway()
    workflow = _workflow(gateway)
    key = workflow.lock_key

    workflow.save()

    assert workflow.lock_key == key


def test_notifier_receives_each_outcome() -> None:
    gateway = FakeGateway()
    received = []
    workflow = _workflow(gateway, notifier=received.append)

    workflow.save()
    workflow.publish()

    assert [notice.level for notice in received] == ["success", "success"]
    assert received == workflow.notices


def test_load_restores_sections_and_state() -> None:
    gateway = FakeGateway()
    workflow = _workflow(gateway)
    workflow.sections.reorder("organization", "job-title")
    workflow.save()

    loaded = DraftPersistenceWorkflow.load(gateway, "user-1", "draft-1")

    assert loaded is not None
    assert loaded.state == "draft"
    assert [s.title for s in loaded.sections.ordered()] == [s.title for s in workflow.sections.ordered()]

    workflow.publish()
    assert DraftPersistenceWorkflow.load(gateway, "user-1", "draft-1").state == "published"
    assert DraftPersistenceWorkflow.load(gateway, "someone-else", "draft-1") is None


def test_operation_locks_are_released_from_registry() -> None:
    gateway = FakeGateway()
    before = len(drafts._OPERATION_LOCKS)

    workflow = _workflow(gateway)
    workflow.save()
    workflow.publish()
    for _ in range(5):
        _workflow(gateway).save()

    assert len(drafts._OPERATION_LOCKS) == before


def test_busy_operation_keeps_lock_until_holder_exits() -> None:
    gateway = FakeGateway()
    workflow = _workflow(gateway)

    with operation_slot(workflow.lock_key):
        assert workflow.save().failure == "busy"
        assert workflow.lock_key in drafts._OPERATION_LOCKS

    assert workflow.lock_key not in drafts._OPERATION_LOCKS


def test_load_keeps_renamed_section_type_and_lock() -> None:
    gateway = FakeGateway()
    sections = DraftSectionModel.from_text("# Responsibilities\n\nLead the grants team")
    sections.set_title("responsibilities", "What you will do")
    sections.set_locked("summary", True)
    workflow = DraftPersistenceWorkflow(gateway, "user-1", sections)
    workflow.save()

    loaded = DraftPersistenceWorkflow.load(
        gateway, "user-1", "draft-1", progress=ProgressFlagSynchronizer(gateway, "user-1")
    )

    assert loaded is not None
    renamed = loaded.sections.get("responsibilities")
    assert renamed.type == "responsibilities"
    assert renamed.title == "What you will do"
    assert renamed.content == "Lead the grants team"
    assert loaded.sections.get("summary").locked is True
    assert [s.type for s in loaded.sections.ordered()] == [s.type for s in sections.ordered()]
    assert sum(1 for s in loaded.sections.sections if s.type == "responsibilities") == 1

    result = loaded.publish()

    assert result.ok
    assert gateway.jobs[result.job_id].responsibilities == "Lead the grants team"


def test_load_parses_text_when_metadata_is_missing() -> None:
    gateway = FakeGateway()
    workflow = _workflow(gateway)
    workflow.save()
    gateway.drafts["draft-1"].generation_metadata = {}

    loaded = DraftPersistenceWorkflow.load(gateway, "user-1", "draft-1")

    assert loaded is not None
    assert loaded.sections.compile() == workflow.sections.compile()
