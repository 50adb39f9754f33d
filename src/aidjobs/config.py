from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "AidJobs"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 8787
    log_level: str = "INFO"

    database_url: str = "sqlite:///./data/aidjobs.db"
    expected_database_url: str = ""
    data_dir: Path = Path("./data")

    openai_api_key: str = ""
    openai_base_url: str = "https://openrouter.ai/api/v1"
    openai_model_writer: str = "deepseek/deepseek-r1-0528-qwen3-8b:free"
    openai_fallback_models: str = "deepseek/deepseek-r1-0528:free,qwen/qwen3-14b-04-28:free"
    openai_timeout_sec: int = 30

    local_llm_enabled: bool = False
    local_llm_base_url: str = "http://localhost:11434/v1"
    local_llm_api_key: str = "local"
    local_llm_model: str = "qwen2.5:14b-instruct"
    local_llm_timeout_sec: int = 90

    ai_min_response_chars: int = 50
    org_fetch_timeout_sec: int = 30
    org_content_max_chars: int = 10000

    cors_origins: str = "http://127.0.0.1:8787"

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("ai_min_response_chars", "org_content_max_chars")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("value must not be negative")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def writer_model_chain(self) -> list[str]:
        models = [self.openai_model_writer]
        models.extend(name.strip() for name in self.openai_fallback_models.split(","))
        chain: list[str] = []
        for name in models:
            if name and name not in chain:
                chain.append(name)
        return chain

    def backend_target_matches(self) -> bool | None:
        """Compare the configured backend against the expected target.

        Returns ``None`` when no expected target is configured.
        """
        if not self.expected_database_url:
            return None
        return self.database_url.rstrip("/") == self.expected_database_url.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def check_backend_target(settings: Settings | None = None) -> bool | None:
    settings = settings or get_settings()
    matches = settings.backend_target_matches()
    if matches is False:
        logger.warning(
            "Backend target mismatch: database_url=%s expected=%s",
            settings.database_url,
            settings.expected_database_url,
        )
    return matches
