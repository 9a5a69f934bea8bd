"""Form submission orchestration and read paths.

This module coordinates validation, submission protection, sanitization and
persistence for incoming submissions, and serves listing, lookup and
statistics queries over stored submissions.
"""

from collections import Counter
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.models.database import ensure_utc, utcnow
from app.models.draft import DraftSubmission
from app.models.submission import FormSubmission
from app.schemas.forms import FormSubmissionRequest, FormSubmissionResponse
from app.services.errors import (
    PersistenceError,
    SubmissionNotFoundError,
    SubmissionRejected,
)
from app.services.submission_guard import SubmissionGuard
from app.services.validation import FormValidator
from app.logging_config import get_logger

logger = get_logger(__name__)


class SubmissionService:
    """Service for accepting and querying form submissions."""

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        validator: Optional[FormValidator] = None,
        guard: Optional[SubmissionGuard] = None
    ):
        """Initialize submission service.

        Args:
            db: SQLAlchemy database session
            settings: Application settings (defaults to cached settings)
            validator: Form validator (built from settings if omitted)
            guard: Submission guard (built from settings if omitted)
        """
        self.db = db
        self.settings = settings or get_settings()
        self.validator = validator or FormValidator(
            max_questions=self.settings.max_questionnaire_length,
            max_answer_length=self.settings.max_answer_length,
        )
        self.guard = guard or SubmissionGuard(db, self.settings)

    def submit_form(
        self,
        request: FormSubmissionRequest,
        request_metadata: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None
    ) -> FormSubmissionResponse:
        """Validate, protect and persist a form submission.

        Flow:
        1. Validate questionnaire, answers and submitter email
        2. Run the submission guard when a session id is present
        3. Sanitize questions and answers
        4. Insert the submission
        5. Delete the session's draft when converting one (best effort)

        Args:
            request: Parsed submission body
            request_metadata: Caller metadata (ipAddress, userAgent, referer, ...)
            now: Submission time (defaults to current UTC time)

        Returns:
            FormSubmissionResponse with the new submission id, or a failure
            envelope if the database rejected the write

        Raises:
            FormValidationError: If the submission is invalid
            RateLimitError: If the guard throttles the session or IP
        """
        now = now or utcnow()
        request_metadata = {
            key: value for key, value in (request_metadata or {}).items() if value is not None
        }
        questions = [question.to_document() for question in request.questions]

        try:
            self.validator.validate_submission(questions, request.answers, request.user_email)

            ip_address = request_metadata.get("ipAddress") or request.ip_address
            if request.session_id:
                self.guard.check_allowed(request.session_id, ip_address, now)

            sanitized_questions = [self.validator.sanitize(question) for question in questions]
            sanitized_answers = self.validator.sanitize(request.answers)

            metadata = {**(request.metadata or {}), **request_metadata}
            # The guard counts this key, so it must hold the checked address
            metadata["ipAddress"] = ip_address
            metadata["version"] = self.settings.submission_version
            metadata["source"] = self.settings.submission_source
            if request.convert_from_draft:
                metadata["convertedFromDraft"] = True

            submission = FormSubmission(
                form_id=request.form_id,
                questions=sanitized_questions,
                answers=sanitized_answers,
                question_count=len(sanitized_questions),
                user_email=request.user_email,
                user_agent=request.user_agent or request_metadata.get("userAgent"),
                ip_address=ip_address,
                submitted_at=now,
                session_id=request.session_id,
                submission_attempts=1,
                last_submission_attempt=now,
                is_processed=False,
                submission_metadata=metadata,
            )
            self.db.add(submission)
            self.db.commit()

            logger.info(
                f"Form submission saved with ID: {submission.id}",
                extra={"form_id": request.form_id}
            )

            if request.convert_from_draft and request.session_id:
                self._discard_draft(request.session_id)

            return FormSubmissionResponse(
                success=True,
                message="Form submitted successfully",
                submission_id=submission.id,
            )

        except SubmissionRejected as e:
            logger.info(f"Form submission rejected: {e.message}")
            raise

        except Exception as e:
            logger.error(f"Error submitting form: {e}", exc_info=True)
            self.db.rollback()
            return FormSubmissionResponse(
                success=False,
                message="Form submission failed",
                errors=[str(e) or "An unexpected error occurred"],
            )

    def _discard_draft(self, session_id: str) -> None:
        """Delete the draft a submission was converted from.

        The submission is already committed, so failures are only logged.
        """
        try:
            deleted = DraftSubmission.delete_by_session(self.db, session_id)
            self.db.commit()
            logger.info(f"Removed {deleted} draft(s) after conversion for session {session_id[:12]}")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Failed to delete draft for session {session_id[:12]}: {e}")

    def list_submissions(
        self,
        form_id: Optional[str] = None,
        user_email: Optional[str] = None,
        limit: int = 10,
        offset: int = 0
    ) -> tuple[list[FormSubmission], int]:
        """List submissions newest first.

        Args:
            form_id: Only include submissions of this form
            user_email: Only include submissions from this email
            limit: Page size
            offset: Number of submissions to skip

        Returns:
            Tuple of (page of submissions, total matching submissions)

        Raises:
            PersistenceError: If the query fails
        """
        filters = []
        if form_id:
            filters.append(FormSubmission.form_id == form_id)
        if user_email:
            filters.append(FormSubmission.user_email == user_email)

        try:
            submissions = list(self.db.execute(
                select(FormSubmission)
                .where(*filters)
                .order_by(FormSubmission.submitted_at.desc())
                .limit(limit)
                .offset(offset)
            ).scalars())
            total = self.db.execute(
                select(func.count()).select_from(FormSubmission).where(*filters)
            ).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching form submissions: {e}")
            raise PersistenceError("Failed to fetch form submissions") from e

        return submissions, total

    def get_submission(self, submission_id: str) -> FormSubmission:
        """Fetch a single submission.

        Raises:
            SubmissionNotFoundError: If no submission has this id
            PersistenceError: If the query fails
        """
        try:
            submission = self.db.get(FormSubmission, submission_id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching form submission {submission_id}: {e}")
            raise PersistenceError("Failed to fetch form submission") from e

        if submission is None:
            raise SubmissionNotFoundError(f"Form submission {submission_id} not found")
        return submission

    def mark_processed(self, submission_id: str, now: Optional[datetime] = None) -> FormSubmission:
        """Flag a submission as handled by a downstream consumer.

        Raises:
            SubmissionNotFoundError: If no submission has this id
            PersistenceError: If the update fails
        """
        submission = self.get_submission(submission_id)
        try:
            submission.mark_processed(now or utcnow())
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error marking submission {submission_id} processed: {e}")
            raise PersistenceError("Failed to update form submission") from e

        logger.info(f"Submission {submission_id} marked processed")
        return submission

    def get_statistics(self, form_id: Optional[str] = None) -> dict[str, Any]:
        """Compute submission statistics.

        Returns:
            Dict with totalSubmissions, submissionsByDate (UTC days,
            ascending) and averageQuestionsPerSubmission (2 decimals)

        Raises:
            PersistenceError: If a query fails
        """
        filters = [FormSubmission.form_id == form_id] if form_id else []

        try:
            total, avg_questions = self.db.execute(
                select(func.count(FormSubmission.id), func.avg(FormSubmission.question_count))
                .where(*filters)
            ).one()
            timestamps = self.db.execute(
                select(FormSubmission.submitted_at).where(*filters)
            ).scalars()
            by_date = Counter(
                ensure_utc(submitted_at).strftime("%Y-%m-%d") for submitted_at in timestamps
            )
        except SQLAlchemyError as e:
            logger.error(f"Error fetching form statistics: {e}")
            raise PersistenceError("Failed to fetch form statistics") from e

        return {
            "totalSubmissions": total,
            "submissionsByDate": [
                {"date": day, "count": by_date[day]} for day in sorted(by_date)
            ],
            "averageQuestionsPerSubmission": round(float(avg_questions or 0), 2),
        }
