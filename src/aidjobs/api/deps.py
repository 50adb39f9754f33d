from __future__ import annotations

from collections.abc import Generator

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session

from aidjobs.db.session import get_db_session
from aidjobs.llm.router import LLMRouter


def get_db() -> Generator[Session, None, None]:
    yield from get_db_session()


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return user_id


def get_llm_router() -> LLMRouter:
    return LLMRouter()
