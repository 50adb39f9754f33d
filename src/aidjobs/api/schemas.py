from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from aidjobs.types import SectionType


class UserCreateRequest(BaseModel):
    email: str = ""


class UserResponse(BaseModel):
    id: str
    email: str


class ProgressResponse(BaseModel):
    user_id: str
    flags: dict[str, bool]


class ProgressUpdateRequest(BaseModel):
    flags: dict[str, bool] = Field(default_factory=dict)


class SectionPayload(BaseModel):
    id: str
    title: str
    content: str = ""
    type: SectionType = "custom"
    order: int = 0
    locked: bool = False
    icon: str | None = None
    editing: bool = False
    version_count: int = 0


class SectionsRequest(BaseModel):
    text: str | None = None
    sections: list[SectionPayload] | None = None


class SectionsResponse(BaseModel):
    text: str
    sections: list[SectionPayload]
    stats: dict[str, int]


class ParseRequest(BaseModel):
    text: str


class GenerateRequest(BaseModel):
    brief: str = ""
    org_url: str = ""
    uploaded_text: str = ""


class GenerateResponse(SectionsResponse):
    model: str
    method: Literal["brief", "link", "upload"]


class DetectRequest(BaseModel):
    message: str


class DetectResponse(BaseModel):
    input_type: Literal["briefWithLink", "briefOnly", "referenceLink", "unknown"]
    confidence: float
    brief: str | None = None
    link: str | None = None
    reliable: bool
    description: str
    follow_up_questions: list[str] = Field(default_factory=list)


class DraftSaveRequest(SectionsRequest):
    draft_id: str | None = None


class NoticePayload(BaseModel):
    level: str
    message: str


class DraftResponse(BaseModel):
    draft_id: str | None
    job_id: str | None = None
    state: Literal["unsaved", "draft", "published"]
    title: str
    text: str
    sections: list[SectionPayload] = Field(default_factory=list)
    notices: list[NoticePayload] = Field(default_factory=list)


class DraftSummary(BaseModel):
    id: str
    title: str
    draft_status: str
    last_edited_at: datetime


class RefineRequest(BaseModel):
    title: str
    content: str
    instructions: str = ""


class RefineResponse(BaseModel):
    content: str


class JobResponse(BaseModel):
    id: str
    title: str
    organization_name: str
    status: str
    source_draft_id: str | None
    published_at: datetime | None
    generation_metadata: dict[str, Any] = Field(default_factory=dict)


class ConfigCheckResponse(BaseModel):
    app_env: str
    database_url: str
    expected_database_url: str
    backend_target_matches: bool | None
    writer_models: list[str]
    local_llm_enabled: bool
