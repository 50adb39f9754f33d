from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from aidjobs.config import Settings, check_backend_target
from aidjobs.db.repositories import metadata_payload
from aidjobs.types import GenerationMetadata, JDGenerationInput, ProgressFlags


def test_app_env_is_validated() -> None:
    with pytest.raises(ValidationError):
        Settings(app_env="moon")


def test_writer_model_chain_dedupes_and_keeps_order() -> None:
    settings = Settings(openai_model_writer="a", openai_fallback_models="b, a ,c,")

    assert settings.writer_model_chain == ["a", "b", "c"]


def test_backend_target_check(caplog: pytest.LogCaptureFixture) -> None:
    unset = Settings(database_url="sqlite:///./a.db", expected_database_url="")
    same = Settings(database_url="sqlite:///./a.db", expected_database_url="sqlite:///./a.db/")
    other = Settings(database_url="sqlite:///./a.db", expected_database_url="postgresql://db/aidjobs")

    assert unset.backend_target_matches() is None
    assert same.backend_target_matches() is True

    with caplog.at_level(logging.WARNING):
        assert check_backend_target(other) is False
    assert "Backend target mismatch" in caplog.text


def test_progress_flags_reject_unknown_names() -> None:
    with pytest.raises(ValidationError):
        ProgressFlags.model_validate({"has_started_jd": True, "has_flown": True})


def test_generation_metadata_schema_is_strict() -> None:
    payload = metadata_payload(GenerationMetadata(sections_count=3))
    assert payload["schema_version"] == 1
    assert payload["sections_count"] == 3

    with pytest.raises(ValidationError):
        metadata_payload({"sections_count": 3, "sectionsCount": 3})
    with pytest.raises(ValidationError):
        metadata_payload({"schema_version": 2})


def test_generation_input_method() -> None:
    assert JDGenerationInput(brief="x").method == "brief"
    assert JDGenerationInput(uploaded_text="draft").method == "upload"
    assert JDGenerationInput(brief="x", org_url="https://a.org").method == "link"
