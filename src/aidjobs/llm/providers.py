from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from openai import OpenAI

from aidjobs.config import Settings
from aidjobs.types import ModelResponse

logger = logging.getLogger(__name__)

Message = dict[str, str]


@dataclass(slots=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str
    timeout_sec: int


class LLMProvider:
    def __init__(self, config: ProviderConfig):
        self.config = config
        self.client = OpenAI(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=float(config.timeout_sec),
        )

    def complete(self, *, model: str, messages: list[Message], temperature: float = 0.7) -> ModelResponse:
        try:
            return self._complete_via_responses(model=model, messages=messages, temperature=temperature)
        except Exception as exc:
            if not self._is_unsupported_responses_endpoint(exc):
                raise

            logger.warning(
                "Responses API unavailable for provider=%s base_url=%s; "
                "falling back to chat.completions (%s)",
                self.config.name,
                self.config.base_url,
                exc,
            )
            return self._complete_via_chat_completions(
                model=model, messages=messages, temperature=temperature
            )

    def _complete_via_responses(
        self, *, model: str, messages: list[Message], temperature: float
    ) -> ModelResponse:
        instructions = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        response = self.client.responses.create(
            model=model,
            instructions=instructions or None,
            input=[
                {
                    "role": message["role"],
                    "content": [{"type": "input_text", "text": message["content"]}],
                }
                for message in messages
                if message["role"] != "system"
            ],
            temperature=temperature,
        )
        text = getattr(response, "output_text", "") or ""
        return ModelResponse(content=text, model=model, raw=self._raw(response, "responses"))

    def _complete_via_chat_completions(
        self, *, model: str, messages: list[Message], temperature: float
    ) -> ModelResponse:
        response = self.client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
        )
        text = self._extract_chat_text(response)
        return ModelResponse(content=text, model=model, raw=self._raw(response, "chat_completions"))

    @staticmethod
    def _raw(response: Any, api_path: str) -> dict[str, Any]:
        raw = response.model_dump() if hasattr(response, "model_dump") else {}
        if not isinstance(raw, dict):
            raw = {"raw": raw}
        raw["api_path"] = api_path
        return raw

    @staticmethod
    def _extract_chat_text(response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""

        message = getattr(choices[0], "message", None)
        if message is None:
            return ""

        content = getattr(message, "content", "")
        if isinstance(content, str):
            return content
        if content is None:
            return ""
        return str(content)

    @staticmethod
    def _is_unsupported_responses_endpoint(exc: Exception) -> bool:
        status_code = getattr(exc, "status_code", None)
        if status_code == 404:
            return True

        message = str(exc).strip().lower()
        if not message:
            return False

        return "not found" in message or "404" in message


class ProviderPool:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._openai: LLMProvider | None = None
        self._local: LLMProvider | None = None

    def openai(self) -> LLMProvider:
        if self._openai is None:
            self._openai = LLMProvider(
                ProviderConfig(
                    name="openai",
                    base_url=self.settings.openai_base_url,
                    api_key=self.settings.openai_api_key,
                    timeout_sec=self.settings.openai_timeout_sec,
                )
            )
        return self._openai

    def local(self) -> LLMProvider:
        if self._local is None:
            self._local = LLMProvider(
                ProviderConfig(
                    name="local",
                    base_url=self.settings.local_llm_base_url,
                    api_key=self.settings.local_llm_api_key,
                    timeout_sec=self.settings.local_llm_timeout_sec,
                )
            )
        return self._local

    def candidates(self) -> list[tuple[LLMProvider, str]]:
        """(provider, model) pairs in the order they should be tried."""
        pairs: list[tuple[LLMProvider, str]] = []
        if self.settings.openai_api_key:
            pairs.extend((self.openai(), model) for model in self.settings.writer_model_chain)
        if self.settings.local_llm_enabled:
            pairs.append((self.local(), self.settings.local_llm_model))
        return pairs
