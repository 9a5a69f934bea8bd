"""Database models and session management.

This package contains all SQLAlchemy ORM models and database utilities.
"""

from app.models.database import Base, engine, SessionLocal, get_db, init_db
from app.models.submission import FormSubmission
from app.models.draft import DraftSubmission

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "init_db",
    "FormSubmission",
    "DraftSubmission",
]
