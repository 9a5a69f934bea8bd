"""Draft endpoints: save, fetch and delete drafts, plus admin maintenance."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from app.middleware.rate_limit import api_rate_limit, limiter
from app.middleware.request_logging import extract_request_metadata
from app.models.database import get_db
from app.schemas.drafts import (
    CleanupDraftsResponse,
    DeleteDraftResponse,
    DraftSaveResponse,
    DraftStatisticsResponse,
    GetDraftResponse,
    SaveDraftRequest,
)
from app.services.draft_service import DraftService
from app.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/forms/draft")


def get_draft_service(db: Session = Depends(get_db)) -> DraftService:
    """Build a DraftService bound to the request's database session."""
    return DraftService(db)


@router.post("/save", response_model=DraftSaveResponse, response_model_exclude_none=True)
@limiter.limit(api_rate_limit)
def save_draft(
    body: SaveDraftRequest,
    request: Request,
    response: Response,
    service: DraftService = Depends(get_draft_service)
) -> DraftSaveResponse:
    """Create or overwrite the draft of a session."""
    logger.info(f"Received draft save request for session: {body.session_id[:12]}")

    result = service.save_draft(body, extract_request_metadata(request))
    if not result.success:
        response.status_code = 500
    return result


@router.get("", response_model=DraftStatisticsResponse)
@limiter.limit(api_rate_limit)
def get_draft_statistics(
    request: Request,
    form_id: Optional[str] = Query(None, alias="formId"),
    service: DraftService = Depends(get_draft_service)
) -> DraftStatisticsResponse:
    """Summarize non-expired drafts, optionally for one form."""
    logger.info(f"Received draft statistics request for formId: {form_id or 'all'}")
    return DraftStatisticsResponse.model_validate(service.get_draft_statistics(form_id))


# Declared before the /{session_id} routes so "admin" is not taken as a session id
@router.post("/admin/cleanup", response_model=CleanupDraftsResponse)
@limiter.limit(api_rate_limit)
def cleanup_expired_drafts(
    request: Request,
    service: DraftService = Depends(get_draft_service)
) -> CleanupDraftsResponse:
    """Delete every expired draft."""
    logger.info("Received expired drafts cleanup request")

    deleted = service.cleanup_expired_drafts()
    return CleanupDraftsResponse(
        deleted_count=deleted,
        message=f"Successfully cleaned up {deleted} expired drafts",
    )


@router.get("/{session_id}", response_model=GetDraftResponse)
@limiter.limit(api_rate_limit)
def get_draft(
    session_id: str,
    request: Request,
    service: DraftService = Depends(get_draft_service)
) -> GetDraftResponse:
    """Fetch the active draft of a session; ``draft`` is null when none exists."""
    draft = service.get_draft(session_id)

    if draft is None:
        logger.info(f"No draft found for session: {session_id[:12]}")
        return GetDraftResponse(
            success=True,
            message="No draft found for this session",
            draft=None,
        )

    return GetDraftResponse(
        success=True,
        message="Draft retrieved successfully",
        draft=draft,
    )


@router.delete("/{session_id}", response_model=DeleteDraftResponse)
@limiter.limit(api_rate_limit)
def delete_draft(
    session_id: str,
    request: Request,
    service: DraftService = Depends(get_draft_service)
) -> DeleteDraftResponse:
    """Delete the draft of a session."""
    service.delete_draft(session_id)
    return DeleteDraftResponse(success=True, message="Draft deleted successfully")
