from __future__ import annotations

import logging
from dataclasses import dataclass

from aidjobs.config import Settings, get_settings
from aidjobs.errors import AssistantUnavailableError
from aidjobs.core.sections import SECTION_CATALOGUE
from aidjobs.llm.prompts import (
    DEFAULT_REFINE_INSTRUCTIONS,
    JD_BRIEF_PROMPT,
    JD_LINK_PROMPT,
    JD_SYSTEM_PROMPT,
    JD_UPLOAD_PROMPT,
    ORG_CONTEXT_PROMPT,
    REFINE_SECTION_PROMPT,
    REFINE_SYSTEM_PROMPT,
)
from aidjobs.llm.providers import LLMProvider, Message, ProviderPool
from aidjobs.types import JDGenerationInput, ModelResponse

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "All AI models are currently unavailable. Please try again in a few minutes."

_RETRYABLE_STATUS = {408, 429}
_RETRYABLE_MARKERS = ("timeout", "timed out", "network", "connection")


class InsufficientResponseError(Exception):
    pass


@dataclass(slots=True)
class ModelFailure:
    provider: str
    model: str
    error: str
    retryable: bool

    def describe(self) -> str:
        return f"{self.provider}/{self.model}: {self.error}"


def is_retryable_error(exc: Exception) -> bool:
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return status_code in _RETRYABLE_STATUS or status_code >= 500

    if isinstance(exc, (TimeoutError, ConnectionError)):
        return True
    name = type(exc).__name__.lower()
    if "timeout" in name or "connection" in name:
        return True

    message = str(exc).lower()
    return any(marker in message for marker in _RETRYABLE_MARKERS)


class LLMRouter:
    def __init__(self, settings: Settings | None = None, pool: ProviderPool | None = None):
        self.settings = settings or get_settings()
        self.pool = pool or ProviderPool(self.settings)
        self.last_failures: list[ModelFailure] = []

    def generate_job_description(self, generation_input: JDGenerationInput, *, website_content: str = "") -> ModelResponse:
        template = {
            "brief": JD_BRIEF_PROMPT,
            "upload": JD_UPLOAD_PROMPT,
            "link": JD_LINK_PROMPT,
        }[generation_input.method]
        content = generation_input.brief or generation_input.uploaded_text or generation_input.org_url
        prompt = template.format(content=content)
        if website_content:
            prompt += ORG_CONTEXT_PROMPT.format(website_content=website_content)

        section_titles = "\n".join(f"# {entry.title}" for entry in SECTION_CATALOGUE)
        messages: list[Message] = [
            {"role": "system", "content": JD_SYSTEM_PROMPT.format(section_titles=section_titles)},
            {"role": "user", "content": prompt},
        ]
        return self.complete_with_fallback(messages)

    def refine_section(self, *, title: str, content: str, instructions: str = "") -> ModelResponse:
        messages: list[Message] = [
            {"role": "system", "content": REFINE_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": REFINE_SECTION_PROMPT.format(
                    title=title,
                    instructions=instructions.strip() or DEFAULT_REFINE_INSTRUCTIONS,
                    content=content,
                ),
            },
        ]
        return self.complete_with_fallback(messages)

    def complete_with_fallback(self, messages: list[Message]) -> ModelResponse:
        """Try each configured model in turn.

        Retryable failures move on to the next model; anything else stops the
        chain. Raises ``AssistantUnavailableError`` when nothing succeeded.
        """
        self.last_failures = []
        candidates = self.pool.candidates()
        if not candidates:
            logger.warning("No AI provider configured")
            raise AssistantUnavailableError(UNAVAILABLE_MESSAGE, ["no AI provider configured"])

        for provider, model in candidates:
            try:
                response = self._call(provider, model, messages)
            except Exception as exc:
                failure = ModelFailure(
                    provider=provider.config.name,
                    model=model,
                    error=str(exc) or type(exc).__name__,
                    retryable=is_retryable_error(exc),
                )
                self.last_failures.append(failure)
                if not failure.retryable:
                    logger.error("Non-retryable error from %s, stopping fallback", failure.describe())
                    break
                logger.warning("Model failed, trying next: %s", failure.describe())
                continue

            logger.info("Generated response using provider=%s model=%s", provider.config.name, model)
            return response

        failures = [failure.describe() for failure in self.last_failures]
        logger.error("All AI models failed: %s", "; ".join(failures))
        raise AssistantUnavailableError(UNAVAILABLE_MESSAGE, failures)

    def _call(self, provider: LLMProvider, model: str, messages: list[Message]) -> ModelResponse:
        response = provider.complete(model=model, messages=messages)
        content = response.content.strip()
        if len(content) <= self.settings.ai_min_response_chars:
            raise InsufficientResponseError("Invalid or insufficient response from AI model")
        return response.model_copy(update={"content": content})
