"""
tests/conftest.py — Shared pytest configuration and fixtures.

Sets dummy environment variables BEFORE any sdr_agent module is imported,
so that pydantic-settings doesn't fail on missing required fields.
"""

import os
import pytest

# ── Set dummy env vars before any sdr_agent module is imported ───────────────
# This runs at collection time, before tests execute.
os.environ.setdefault("LLM_API_KEY", "test-key")
os.environ.setdefault("LLM_BASE_URL", "https://llm.test/v1")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from sdr_agent.db.models import Base  # noqa: E402
from sdr_agent.db.session import enable_sqlite_savepoints  # noqa: E402


# ── In-memory DB Fixture ──────────────────────────────────────────────────────

@pytest.fixture
def db():
    """Provide a fresh in-memory SQLite session for each test."""
    engine = enable_sqlite_savepoints(create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
    ))
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = Session()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()
