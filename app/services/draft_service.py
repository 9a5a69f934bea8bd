"""Draft lifecycle: save, fetch, delete, expire and summarize drafts.

Drafts are keyed by the client's session id and live for a fixed seven
days after their last save. Expired drafts are hidden from reads right
away and physically removed by cleanup_expired_drafts, which is meant to
be triggered externally (cron, admin endpoint).
"""

from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.database import isoformat, utcnow
from app.models.draft import DraftSubmission
from app.schemas.drafts import DraftData, DraftSaveResponse, SaveDraftRequest
from app.services.errors import (
    DraftNotFoundError,
    InvalidSessionIdError,
    PersistenceError,
)
from app.services.validation import is_blank
from app.logging_config import get_logger

logger = get_logger(__name__)

DRAFT_TTL = timedelta(days=7)
MIN_SESSION_ID_LENGTH = 10


def validate_session_id(session_id: Optional[str]) -> None:
    """Reject session ids that are missing or too short.

    Raises:
        InvalidSessionIdError: If the session id is shorter than 10 characters
    """
    if not session_id or len(session_id) < MIN_SESSION_ID_LENGTH:
        raise InvalidSessionIdError("Invalid session ID format")


def last_answered_question(answers: dict[str, Any]) -> Optional[str]:
    """Return the last key, in insertion order, whose answer is not blank."""
    answered = [key for key, value in answers.items() if not is_blank(value)]
    return answered[-1] if answered else None


class DraftService:
    """Service for managing draft submissions."""

    def __init__(self, db: Session):
        """Initialize draft service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def save_draft(
        self,
        request: SaveDraftRequest,
        request_metadata: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None
    ) -> DraftSaveResponse:
        """Create or overwrite the draft of a session.

        Args:
            request: Parsed draft body
            request_metadata: Caller metadata (userAgent, ipAddress)
            now: Save time (defaults to current UTC time)

        Returns:
            DraftSaveResponse with the draft id, or a failure envelope if
            the database rejected the write

        Raises:
            InvalidSessionIdError: If the session id is malformed
        """
        validate_session_id(request.session_id)
        now = now or utcnow()
        request_metadata = request_metadata or {}

        values = {
            "form_id": request.form_id,
            "answers": request.answers,
            "current_step": request.current_step,
            "answer_count": len(request.answers),
            "last_modified": now,
            "expires_at": now + DRAFT_TTL,
            "user_agent": request_metadata.get("userAgent"),
            "ip_address": request_metadata.get("ipAddress"),
            "draft_metadata": {
                "answerCount": len(request.answers),
                "lastQuestionAnswered": last_answered_question(request.answers),
            },
        }

        try:
            try:
                draft = self._upsert(request.session_id, values)
            except IntegrityError:
                # A concurrent save inserted the row first; overwrite it
                self.db.rollback()
                draft = self._upsert(request.session_id, values)

            logger.info(
                f"Draft saved for session: {request.session_id[:12]}, step: {request.current_step}",
                extra={"session_id": request.session_id}
            )
            return DraftSaveResponse(
                success=True,
                message="Draft saved successfully",
                draft_id=draft.id,
                last_modified=isoformat(draft.last_modified),
            )

        except SQLAlchemyError as e:
            logger.error(f"Failed to save draft: {e}", exc_info=True)
            self.db.rollback()
            return DraftSaveResponse(
                success=False,
                message="Failed to save draft",
                errors=[str(e)],
            )

    def _upsert(self, session_id: str, values: dict[str, Any]) -> DraftSubmission:
        draft = DraftSubmission.find_for_update(self.db, session_id)
        if draft is None:
            draft = DraftSubmission(session_id=session_id, **values)
            self.db.add(draft)
        else:
            for field, value in values.items():
                setattr(draft, field, value)
        self.db.commit()
        return draft

    def get_draft(self, session_id: str, now: Optional[datetime] = None) -> Optional[DraftData]:
        """Fetch a session's draft if it has not expired.

        Returns:
            DraftData, or None when no active draft exists

        Raises:
            InvalidSessionIdError: If the session id is malformed
            PersistenceError: If the query fails
        """
        validate_session_id(session_id)

        try:
            draft = DraftSubmission.find_active(self.db, session_id, now or utcnow())
        except SQLAlchemyError as e:
            logger.error(f"Failed to retrieve draft: {e}")
            raise PersistenceError("Failed to retrieve draft") from e

        if draft is None:
            return None

        logger.info(f"Draft retrieved for session: {session_id[:12]}")
        return DraftData.model_validate(draft.to_dict())

    def delete_draft(self, session_id: str) -> None:
        """Delete a session's draft.

        Raises:
            InvalidSessionIdError: If the session id is malformed
            DraftNotFoundError: If the session has no draft
            PersistenceError: If the delete fails
        """
        validate_session_id(session_id)

        try:
            deleted = DraftSubmission.delete_by_session(self.db, session_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete draft: {e}")
            raise PersistenceError("Failed to delete draft") from e

        if deleted == 0:
            raise DraftNotFoundError("Draft not found")

        logger.info(f"Draft deleted for session: {session_id[:12]}")

    def cleanup_expired_drafts(self, now: Optional[datetime] = None) -> int:
        """Delete every expired draft.

        Returns:
            Number of drafts removed

        Raises:
            PersistenceError: If the delete fails
        """
        try:
            deleted = DraftSubmission.delete_expired(self.db, now or utcnow())
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to cleanup expired drafts: {e}")
            raise PersistenceError("Failed to cleanup expired drafts") from e

        logger.info(f"Cleaned up {deleted} expired drafts")
        return deleted

    def get_draft_statistics(
        self,
        form_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> dict[str, Any]:
        """Summarize non-expired drafts, optionally for one form.

        Raises:
            PersistenceError: If the query fails
        """
        try:
            return DraftSubmission.statistics(self.db, now or utcnow(), form_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to get draft statistics: {e}")
            raise PersistenceError("Failed to get draft statistics") from e
