"""Pydantic schemas for draft save/get/delete requests and responses."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class SaveDraftRequest(BaseModel):
    """Body of a draft save.

    The session id length rule is enforced by DraftService so that it
    surfaces with the same message on every draft operation.
    """
    session_id: str = Field(..., alias="sessionId", max_length=200)
    form_id: Optional[str] = Field(None, alias="formId", max_length=100)
    answers: dict[str, Any]
    current_step: int = Field(..., alias="currentStep", ge=0)
    questions: Optional[list[Any]] = None

    model_config = {
        "populate_by_name": True,
        "extra": "forbid",
    }


class DraftSaveResponse(BaseModel):
    """Result envelope of a draft save."""
    success: bool
    message: str
    draft_id: Optional[str] = Field(None, alias="draftId")
    last_modified: Optional[str] = Field(None, alias="lastModified")
    errors: Optional[list[str]] = None

    model_config = {"populate_by_name": True}


class DraftData(BaseModel):
    """A non-expired draft as returned to the client."""
    session_id: str = Field(..., alias="sessionId")
    form_id: Optional[str] = Field(None, alias="formId")
    answers: dict[str, Any]
    current_step: int = Field(..., alias="currentStep")
    last_modified: str = Field(..., alias="lastModified")
    expires_at: str = Field(..., alias="expiresAt")

    model_config = {"populate_by_name": True}


class GetDraftResponse(BaseModel):
    """Envelope for a draft lookup; ``draft`` is null when none is active."""
    success: bool
    message: str
    draft: Optional[DraftData] = None


class DeleteDraftResponse(BaseModel):
    """Result envelope of a draft deletion."""
    success: bool
    message: str


class CleanupDraftsResponse(BaseModel):
    """Result envelope of the expired-draft sweep."""
    success: bool = True
    deleted_count: int = Field(..., alias="deletedCount")
    message: str

    model_config = {"populate_by_name": True}


class DraftStatisticsResponse(BaseModel):
    """Aggregate statistics over non-expired drafts."""
    success: bool = True
    message: str = "Draft statistics retrieved successfully"
    total_drafts: int = Field(..., alias="totalDrafts")
    average_step: float = Field(..., alias="averageStep")
    average_answers: float = Field(..., alias="averageAnswers")
    oldest_draft: Optional[str] = Field(None, alias="oldestDraft")
    newest_draft: Optional[str] = Field(None, alias="newestDraft")

    model_config = {"populate_by_name": True}
