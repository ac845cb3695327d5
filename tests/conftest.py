"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tests.test_constants import TEST_LLM_API_KEY

# Never inherit a real database or API key from .env during tests
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["LLM_API_KEY"] = TEST_LLM_API_KEY
os.environ["SMTP_HOST"] = ""


@pytest.fixture(autouse=True)
def _clear_cached_singletons() -> None:
    """Reset cached settings, providers and prompt templates around each test."""
    from dealflow.config import get_settings
    from dealflow.llm.router import clear_provider_cache
    from dealflow.prompts.loader import load_prompt

    get_settings.cache_clear()
    clear_provider_cache()
    load_prompt.cache_clear()
    yield
    get_settings.cache_clear()
    clear_provider_cache()
    load_prompt.cache_clear()


@pytest.fixture
def db() -> Session:
    """Fresh in-memory database per test with every table created."""
    from dealflow.db.session import Base
    import dealflow.models  # noqa: F401  (register tables)

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    # Same session settings as SessionLocal: objects expire on commit
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()
