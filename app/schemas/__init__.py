"""Pydantic schemas for request parsing and response envelopes.

This package contains all Pydantic models for form submissions and drafts.
"""

from app.schemas.forms import (
    QuestionType,
    Question,
    FormSubmissionRequest,
    FormSubmissionResponse,
    SubmissionListResponse,
    SubmissionResponse,
    DailyCount,
    FormStatisticsResponse,
)
from app.schemas.drafts import (
    SaveDraftRequest,
    DraftSaveResponse,
    DraftData,
    GetDraftResponse,
    DeleteDraftResponse,
    CleanupDraftsResponse,
    DraftStatisticsResponse,
)

__all__ = [
    "QuestionType",
    "Question",
    "FormSubmissionRequest",
    "FormSubmissionResponse",
    "SubmissionListResponse",
    "SubmissionResponse",
    "DailyCount",
    "FormStatisticsResponse",
    "SaveDraftRequest",
    "DraftSaveResponse",
    "DraftData",
    "GetDraftResponse",
    "DeleteDraftResponse",
    "CleanupDraftsResponse",
    "DraftStatisticsResponse",
]
