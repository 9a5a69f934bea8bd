"""Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests.
"""

import os
from datetime import datetime, timezone
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set required environment variables for tests BEFORE importing app modules
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("LOG_LEVEL", "INFO")

from app.models import Base


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine with SQLite in-memory database.

    Yields:
        Engine: SQLAlchemy engine for testing

    Note:
        StaticPool keeps the single in-memory connection shared between
        the test thread and FastAPI's threadpool.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,  # Set to True for SQL debugging
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory bound to the test engine."""
    return sessionmaker(
        bind=db_engine,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a test database session.

    Yields:
        Session: SQLAlchemy session for testing
    """
    session = session_factory()

    yield session

    session.rollback()
    session.close()


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time for time-dependent tests."""
    return datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_session_id() -> str:
    """Provide a valid draft/submission session id (>= 10 chars)."""
    return "sess-0123456789"


@pytest.fixture
def sample_questions() -> list[dict]:
    """Questionnaire covering every question type."""
    return [
        {"id": "name", "type": "text", "title": "What is your name?", "required": True},
        {"id": "email", "type": "email", "title": "What is your email?", "required": True},
        {
            "id": "experience",
            "type": "multiple-choice",
            "title": "What is your experience level?",
            "required": True,
            "options": ["Beginner", "Intermediate", "Advanced"],
        },
        {"id": "notes", "type": "text", "title": "Anything else?", "required": False},
    ]


@pytest.fixture
def sample_answers() -> dict:
    """Answers satisfying sample_questions."""
    return {
        "name": "John Doe",
        "email": "john@example.com",
        "experience": "Intermediate",
    }
