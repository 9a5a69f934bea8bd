"""Form submission endpoints.

Submit a form, list and fetch stored submissions, mark submissions
processed and read aggregate statistics.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from app.middleware.rate_limit import api_rate_limit, limiter
from app.middleware.request_logging import extract_request_metadata
from app.models.database import get_db
from app.schemas.forms import (
    FormStatisticsResponse,
    FormSubmissionRequest,
    FormSubmissionResponse,
    SubmissionListResponse,
    SubmissionResponse,
)
from app.services.submission_service import SubmissionService
from app.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/forms")


def get_submission_service(db: Session = Depends(get_db)) -> SubmissionService:
    """Build a SubmissionService bound to the request's database session."""
    return SubmissionService(db)


@router.post("/submit", response_model=FormSubmissionResponse, response_model_exclude_none=True)
@limiter.limit(api_rate_limit)
def submit_form(
    body: FormSubmissionRequest,
    request: Request,
    response: Response,
    service: SubmissionService = Depends(get_submission_service)
) -> FormSubmissionResponse:
    """Validate and store a form submission.

    Returns:
        FormSubmissionResponse with the new submission id

    Raises:
        FormValidationError: Mapped to 400 by the application handlers
        RateLimitError: Mapped to 429 by the application handlers
    """
    logger.info("Received form submission request", extra={"form_id": body.form_id})

    result = service.submit_form(body, extract_request_metadata(request))
    if not result.success:
        response.status_code = 500
    return result


@router.get("/submissions", response_model=SubmissionListResponse)
@limiter.limit(api_rate_limit)
def list_submissions(
    request: Request,
    form_id: Optional[str] = Query(None, alias="formId"),
    user_email: Optional[str] = Query(None, alias="userEmail"),
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: SubmissionService = Depends(get_submission_service)
) -> SubmissionListResponse:
    """List submissions newest first with optional filters and pagination."""
    submissions, total = service.list_submissions(form_id, user_email, limit, offset)
    return SubmissionListResponse(
        submissions=[submission.to_dict() for submission in submissions],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/submissions/{submission_id}", response_model=SubmissionResponse)
@limiter.limit(api_rate_limit)
def get_submission(
    submission_id: str,
    request: Request,
    service: SubmissionService = Depends(get_submission_service)
) -> SubmissionResponse:
    """Fetch a single submission by id."""
    submission = service.get_submission(submission_id)
    return SubmissionResponse(submission=submission.to_dict())


@router.post("/submissions/{submission_id}/processed", response_model=SubmissionResponse)
@limiter.limit(api_rate_limit)
def mark_submission_processed(
    submission_id: str,
    request: Request,
    service: SubmissionService = Depends(get_submission_service)
) -> SubmissionResponse:
    """Flag a submission as handled by a downstream consumer."""
    submission = service.mark_processed(submission_id)
    return SubmissionResponse(
        message="Submission marked as processed",
        submission=submission.to_dict(),
    )


@router.get("/statistics", response_model=FormStatisticsResponse)
@limiter.limit(api_rate_limit)
def get_statistics(
    request: Request,
    form_id: Optional[str] = Query(None, alias="formId"),
    service: SubmissionService = Depends(get_submission_service)
) -> FormStatisticsResponse:
    """Aggregate submission counts per day and average questionnaire size."""
    return FormStatisticsResponse.model_validate(service.get_statistics(form_id))
