from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from aidjobs.config import Settings, get_settings
from aidjobs.core.org_fetcher import fetch_org_text
from aidjobs.core.progress import ProgressFlagSynchronizer
from aidjobs.core.sections import DraftSectionModel, manual_template
from aidjobs.errors import AssistantUnavailableError, InputValidationError
from aidjobs.llm.router import LLMRouter
from aidjobs.types import JDGenerationInput

logger = logging.getLogger(__name__)

GENERATION_SOURCE = "jd_generation"
MODEL_FAILURE_SOURCE = "ai_model_fallback"


@dataclass(slots=True)
class GenerationResult:
    text: str
    sections: DraftSectionModel
    model: str
    method: str


def validate_generation_input(
    brief: str = "", org_url: str = "", uploaded_text: str = ""
) -> JDGenerationInput:
    try:
        return JDGenerationInput(brief=brief, org_url=org_url, uploaded_text=uploaded_text)
    except ValidationError as exc:
        messages = "; ".join(error["msg"] for error in exc.errors())
        raise InputValidationError(messages) from exc


class JobDescriptionGenerator:
    def __init__(
        self,
        repo: Any,
        progress: ProgressFlagSynchronizer,
        *,
        router: LLMRouter | None = None,
        settings: Settings | None = None,
        fetcher: Callable[..., str] = fetch_org_text,
    ):
        self.repo = repo
        self.progress = progress
        self.settings = settings or get_settings()
        self.router = router or LLMRouter(settings=self.settings)
        self.fetcher = fetcher

    def generate(self, generation_input: JDGenerationInput) -> GenerationResult:
        user_id = self.progress.user_id
        self.progress.update_flags({"has_started_jd": True, "has_submitted_jd_inputs": True})

        website_content = ""
        if generation_input.org_url:
            website_content = self.fetcher(
                generation_input.org_url,
                timeout_sec=self.settings.org_fetch_timeout_sec,
                max_chars=self.settings.org_content_max_chars,
            )

        try:
            response = self.router.generate_job_description(
                generation_input, website_content=website_content
            )
        except AssistantUnavailableError as exc:
            logger.error("Job description generation failed for user %s: %s", user_id, exc)
            self.progress.update_flag("jd_generation_failed", True)
            self._log_failures(user_id, exc)
            raise

        self.progress.update_flags({"has_generated_jd": True, "jd_generation_failed": False})
        logger.info(
            "Generated job description for user %s via %s (%s chars)",
            user_id,
            response.model,
            len(response.content),
        )
        return GenerationResult(
            text=response.content,
            sections=DraftSectionModel.from_text(response.content),
            model=response.model,
            method=generation_input.method,
        )

    def refine_section(self, *, title: str, content: str, instructions: str = "") -> str:
        response = self.router.refine_section(title=title, content=content, instructions=instructions)
        return response.content

    @staticmethod
    def manual_template() -> str:
        return manual_template()

    def _log_failures(self, user_id: str | None, exc: AssistantUnavailableError) -> None:
        rows = [("ai_model_failure", failure, MODEL_FAILURE_SOURCE) for failure in exc.failures]
        rows.append(("jd_generation_failed", str(exc), GENERATION_SOURCE))
        try:
            for error_type, details, source in rows:
                self.repo.log_error(
                    user_id=user_id, error_type=error_type, details=details, source=source
                )
        except SQLAlchemyError:
            logger.exception("Could not write error log for user %s", user_id)
