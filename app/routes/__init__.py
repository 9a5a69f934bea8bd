"""Routes package for FastAPI endpoints.

This package contains all API route modules for the EasyForm backend.
"""

from app.routes import drafts, forms, health

__all__ = ["drafts", "forms", "health"]
