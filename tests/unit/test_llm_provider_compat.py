from __future__ import annotations

from types import SimpleNamespace

import pytest

from aidjobs.config import Settings
from aidjobs.llm.providers import LLMProvider, ProviderConfig, ProviderPool

MESSAGES = [
    {"role": "system", "content": "You write job descriptions."},
    {"role": "user", "content": "Program officer, Nairobi"},
]


class DummyAPIError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FakeResponsePayload:
    def __init__(self, *, output_text: str = "", raw: dict | None = None):
        self.output_text = output_text
        self._raw = raw or {}

    def model_dump(self) -> dict:
        return self._raw


class FakeChatPayload:
    def __init__(self, *, content: str, raw: dict | None = None):
        self.choices = [SimpleNamespace(message=SimpleNamespace(content=content))]
        self._raw = raw or {}

    def model_dump(self) -> dict:
        return self._raw


class FakeEndpoint:
    def __init__(self, fn):
        self._fn = fn

    def create(self, **kwargs):
        return self._fn(**kwargs)


class FakeClient:
    def __init__(self, *, responses_fn, chat_fn):
        self.responses = FakeEndpoint(responses_fn)
        self.chat = SimpleNamespace(completions=FakeEndpoint(chat_fn))


def _provider_with_fake_client(fake_client: FakeClient) -> LLMProvider:
    provider = LLMProvider(
        ProviderConfig(
            name="openai",
            base_url="http://localhost:9999/v1",
            api_key="dummy",
            timeout_sec=5,
        )
    )
    provider.client = fake_client
    return provider


def test_complete_uses_responses_with_system_as_instructions() -> None:
    seen = {}

    def responses_fn(**kwargs):
        seen.update(kwargs)
        return FakeResponsePayload(output_text="RESP_OK", raw={"id": "resp_1"})

    def chat_fn(**kwargs):
        raise AssertionError("chat path should not be used")

    provider = _provider_with_fake_client(FakeClient(responses_fn=responses_fn, chat_fn=chat_fn))
    result = provider.complete(model="writer", messages=MESSAGES)

    assert result.content == "RESP_OK"
    assert result.model == "writer"
    assert result.raw["api_path"] == "responses"
    assert seen["instructions"] == "You write job descriptions."
    assert [item["role"] for item in seen["input"]] == ["user"]


def test_complete_falls_back_to_chat_on_responses_not_found() -> None:
    seen = {}

    def responses_fn(**kwargs):
        raise DummyAPIError("Not found", status_code=404)

    def chat_fn(**kwargs):
        seen.update(kwargs)
        return FakeChatPayload(content="CHAT_OK", raw={"id": "chat_1"})

    provider = _provider_with_fake_client(FakeClient(responses_fn=responses_fn, chat_fn=chat_fn))
    result = provider.complete(model="writer", messages=MESSAGES)

    assert result.content == "CHAT_OK"
    assert result.raw["api_path"] == "chat_completions"
    assert seen["messages"] == MESSAGES


def test_complete_reraises_other_errors() -> None:
    def responses_fn(**kwargs):
        raise DummyAPIError("rate limited", status_code=429)

    def chat_fn(**kwargs):
        raise AssertionError("chat path should not be used")

    provider = _provider_with_fake_client(FakeClient(responses_fn=responses_fn, chat_fn=chat_fn))
    with pytest.raises(DummyAPIError, match="rate limited"):
        provider.complete(model="writer", messages=MESSAGES)


def test_pool_orders_candidates_writer_fallbacks_then_local() -> None:
    settings = Settings(
        openai_api_key="sk-test",
        openai_model_writer="model-a",
        openai_fallback_models="model-b,model-a",
        local_llm_enabled=True,
        local_llm_model="local-model",
    )

    candidates = ProviderPool(settings).candidates()

    assert [(provider.config.name, model) for provider, model in candidates] == [
        ("openai", "model-a"),
        ("openai", "model-b"),
        ("local", "local-model"),
    ]


def test_pool_skips_openai_without_key() -> None:
    settings = Settings(openai_api_key="", local_llm_enabled=False)

    assert ProviderPool(settings).candidates() == []
