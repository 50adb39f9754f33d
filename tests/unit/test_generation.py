from __future__ import annotations

import pytest

from aidjobs.config import Settings
from aidjobs.core.generation import JobDescriptionGenerator, validate_generation_input
from aidjobs.core.progress import ProgressFlagSynchronizer
from aidjobs.errors import AssistantUnavailableError, InputValidationError
from aidjobs.types import ModelResponse
from fakes import FakeGateway

GENERATED = (
    "# Job Title\n\nWASH Program Manager\n\n"
    "# Job Summary\n\nLead water and sanitation programming across three regions.\n\n"
    "# Key Responsibilities\n\n- Manage partner grants\n- Report to donors\n"
)


class FakeRouter:
    def __init__(self, *, fail: bool = False):
        self.fail = fail
        self.calls = []

    def generate_job_description(self, generation_input, *, website_content=""):
        self.calls.append((generation_input, website_content))
        if self.fail:
            raise AssistantUnavailableError(
                "All AI models are currently unavailable. Please try again in a few minutes.",
                ["openai/model-a: HTTP 429", "openai/model-b: HTTP 503"],
            )
        return ModelResponse(content=GENERATED, model="model-a")

    def refine_section(self, *, title, content, instructions=""):
        return ModelResponse(content=f"{content} (refined)", model="model-a")


def _generator(gateway: FakeGateway, router: FakeRouter, **kwargs) -> JobDescriptionGenerator:
    return JobDescriptionGenerator(
        gateway,
        ProgressFlagSynchronizer(gateway, "user-1"),
        router=router,
        settings=Settings(openai_api_key=""),
        **kwargs,
    )


def _flag_updates(gateway: FakeGateway) -> list[dict]:
    return [payload for name, payload in gateway.calls if name == "update_progress_flags"]


def test_validation_rejects_empty_input() -> None:
    with pytest.raises(InputValidationError):
        validate_generation_input()
    with pytest.raises(InputValidationError):
        validate_generation_input(brief="   ")


def test_validation_rejects_malformed_url() -> None:
    with pytest.raises(InputValidationError):
        validate_generation_input(org_url="not a url")


def test_validation_normalises_bare_domain() -> None:
    generation_input = validate_generation_input(org_url="hoperelief.org")

    assert generation_input.org_url == "https://hoperelief.org"
    assert generation_input.method == "link"


def test_successful_generation_sets_milestones_in_order() -> None:
    gateway = FakeGateway()
    router = FakeRouter()
    generator = _generator(gateway, router)

    result = generator.generate(validate_generation_input(brief="WASH program manager for East Africa"))

    assert _flag_updates(gateway) == [
        {"has_started_jd": True, "has_submitted_jd_inputs": True},
        {"has_generated_jd": True, "jd_generation_failed": False},
    ]
    assert result.model == "model-a"
    assert result.method == "brief"
    assert result.sections.get("job-title").content == "WASH Program Manager"
    assert gateway.errors == []


def test_unavailable_assistant_sets_failure_flag_and_logs() -> None:
    gateway = FakeGateway()
    generator = _generator(gateway, FakeRouter(fail=True))

    with pytest.raises(AssistantUnavailableError) as excinfo:
        generator.generate(validate_generation_input(brief="Field coordinator"))

    assert len(excinfo.value.failures) == 2
    assert _flag_updates(gateway)[-1] == {"jd_generation_failed": True}
    assert {"has_generated_jd": True, "jd_generation_failed": False} not in _flag_updates(gateway)
    assert [entry["error_type"] for entry in gateway.errors] == [
        "ai_model_failure",
        "ai_model_failure",
        "jd_generation_failed",
    ]


def test_org_url_content_is_fetched_and_forwarded() -> None:
    gateway = FakeGateway()
    router = FakeRouter()
    fetched = []

    def fake_fetch(url, timeout_sec, max_chars):
        fetched.append((url, max_chars))
        return f"Website content from {url}:\n\nWe protect children."

    generator = _generator(gateway, router, fetcher=fake_fetch)
    generator.generate(validate_generation_input(brief="Child protection officer", org_url="savekids.org"))

    assert fetched == [("https://savekids.org", 10000)]
    assert router.calls[0][1].endswith("We protect children.")


def test_refine_section_returns_router_content() -> None:
    generator = _generator(FakeGateway(), FakeRouter())

    assert generator.refine_section(title="Job Summary", content="Short") == "Short (refined)"
