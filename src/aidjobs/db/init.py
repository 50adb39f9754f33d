from __future__ import annotations

from sqlalchemy import inspect

from aidjobs.config import get_settings
from aidjobs.db.base import Base
from aidjobs.db.session import engine
from aidjobs.db import models  # noqa: F401


def ensure_data_directories() -> None:
    get_settings().data_dir.mkdir(parents=True, exist_ok=True)


def init_database() -> dict[str, list[str]]:
    ensure_data_directories()
    Base.metadata.create_all(bind=engine)
    return {"tables": sorted(inspect(engine).get_table_names())}
