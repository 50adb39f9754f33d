from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, get_args
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ProgressFlagName = Literal[
    "has_uploaded_cv",
    "has_analyzed_cv",
    "has_selected_job",
    "has_written_cover_letter",
    "has_published_job",
    "has_applied_to_job",
    "has_started_jd",
    "has_submitted_jd_inputs",
    "has_generated_jd",
    "jd_generation_failed",
]
PROGRESS_FLAG_NAMES: tuple[str, ...] = get_args(ProgressFlagName)

SectionType = Literal[
    "title",
    "overview",
    "sdgs",
    "sectors",
    "dei",
    "summary",
    "responsibilities",
    "qualifications",
    "experience",
    "contract",
    "how-to-apply",
    "organization",
    "custom",
]
VersionSource = Literal["user", "ai", "system"]
DraftStatus = Literal["draft", "review", "ready", "archived"]
JobStatus = Literal["published", "archived", "closed"]
DraftState = Literal["unsaved", "draft", "published"]


class ProgressFlags(BaseModel):
    model_config = ConfigDict(extra="forbid")

    has_uploaded_cv: bool = False
    has_analyzed_cv: bool = False
    has_selected_job: bool = False
    has_written_cover_letter: bool = False
    has_published_job: bool = False
    has_applied_to_job: bool = False
    has_started_jd: bool = False
    has_submitted_jd_inputs: bool = False
    has_generated_jd: bool = False
    jd_generation_failed: bool = False


class SectionOrderEntry(BaseModel):
    id: str
    type: SectionType
    order: int
    locked: bool = False


class SectionVersionSummary(BaseModel):
    id: str
    version_count: int = 0


class GenerationMetadata(BaseModel):
    """Snapshot stored with drafts and published jobs."""

    model_config = ConfigDict(extra="forbid")

    schema_version: Literal[1] = 1
    sections_count: int = 0
    generated_at: datetime | None = None
    published_at: datetime | None = None
    published_from_editor: bool = False
    section_order: list[SectionOrderEntry] = Field(default_factory=list)
    section_versions: list[SectionVersionSummary] = Field(default_factory=list)

    @field_validator("sections_count")
    @classmethod
    def validate_sections_count(cls, value: int) -> int:
        if value < 0:
            raise ValueError("sections_count must not be negative")
        return value


class JDGenerationInput(BaseModel):
    brief: str = ""
    org_url: str = ""
    uploaded_text: str = ""

    @field_validator("brief", "uploaded_text")
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()

    @field_validator("org_url")
    @classmethod
    def validate_org_url(cls, value: str) -> str:
        candidate = value.strip()
        if not candidate:
            return ""
        if not candidate.startswith(("http://", "https://")):
            candidate = f"https://{candidate}"
        parsed = urlparse(candidate)
        if not parsed.netloc or "." not in parsed.netloc or " " in candidate:
            raise ValueError("org_url must be a valid http(s) URL")
        return candidate

    @model_validator(mode="after")
    def require_some_input(self) -> "JDGenerationInput":
        if not (self.brief or self.org_url or self.uploaded_text):
            raise ValueError("provide a brief, an organization URL or an uploaded job description")
        return self

    @property
    def method(self) -> Literal["brief", "link", "upload"]:
        if self.org_url:
            return "link"
        if self.uploaded_text:
            return "upload"
        return "brief"


class ModelResponse(BaseModel):
    content: str
    model: str = ""
    raw: dict[str, Any] = Field(default_factory=dict)
