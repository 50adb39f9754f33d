from __future__ import annotations

import os
import tempfile

os.environ["DATABASE_URL"] = f"sqlite:///{tempfile.mkdtemp(prefix='aidjobs-test-')}/aidjobs.db"
os.environ.setdefault("APP_ENV", "test")
os.environ["OPENAI_API_KEY"] = ""
os.environ["LOCAL_LLM_ENABLED"] = "false"
os.environ["EXPECTED_DATABASE_URL"] = ""

import pytest

from aidjobs.db.base import Base
from aidjobs.db import models  # noqa: F401
from aidjobs.db.session import engine


@pytest.fixture(autouse=True)
def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
