"""FormSubmission model for storing accepted form submissions.

Each submission embeds the questionnaire it was answered against, so
historical submissions stay interpretable after the live form changes.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    Index,
    String,
    Integer,
    Boolean,
    DateTime,
    JSON,
    func,
    select,
    update,
)
from sqlalchemy.orm import Mapped, mapped_column, Session

from app.models.database import Base, isoformat, new_id, utcnow


class FormSubmission(Base):
    """Model for a persisted form submission.

    Attributes:
        id: UUID primary key
        form_id: Optional identifier of the form definition
        questions: Questionnaire embedded at submission time
        answers: Mapping of question id to answer
        question_count: Number of embedded questions (for statistics)
        user_email: Optional submitter email
        user_agent: Optional submitter user agent
        ip_address: Optional submitter IP address
        submitted_at: When the submission was accepted
        session_id: Form-filling session used for submission protection
        submission_attempts: Attempts recorded for this session
        last_submission_attempt: Timestamp of the latest attempt
        is_processed: Whether a downstream consumer handled the submission
        processed_at: When the submission was marked processed
        submission_metadata: Provenance map stored in the ``metadata`` column
    """

    __tablename__ = "form_submissions"

    # Primary Key
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    # Submission Content
    form_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        index=True,
        comment="Identifier of the submitted form"
    )
    questions: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        comment="Questionnaire embedded at submission time"
    )
    answers: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        comment="Answers keyed by question id"
    )
    question_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of embedded questions"
    )

    # Submitter Identity
    user_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True, index=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="When the submission was accepted"
    )

    # Submission Protection
    session_id: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        comment="Form-filling session identifier"
    )
    submission_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Attempts recorded for this session"
    )
    last_submission_attempt: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Timestamp of the latest attempt"
    )

    # Downstream Processing
    is_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    submission_metadata: Mapped[dict] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
        comment="Provenance: version, source and caller-supplied fields"
    )

    __table_args__ = (
        Index("idx_form_submitted", "form_id", "submitted_at"),
        Index("idx_email_submitted", "user_email", "submitted_at"),
        Index("idx_session_attempt", "session_id", "last_submission_attempt"),
        Index("idx_submitted_at", "submitted_at"),
    )

    @classmethod
    def recent_for_session(
        cls,
        db: Session,
        session_id: str,
        since: datetime
    ) -> list["FormSubmission"]:
        """Submissions of a session attempted at or after ``since``, newest first."""
        return list(db.execute(
            select(cls)
            .where(
                cls.session_id == session_id,
                cls.last_submission_attempt >= since,
            )
            .order_by(cls.last_submission_attempt.desc())
        ).scalars())

    @classmethod
    def count_recent_for_ip(cls, db: Session, ip_address: str, since: datetime) -> int:
        """Count submissions whose metadata records ``ip_address`` since ``since``."""
        return db.execute(
            select(func.count())
            .select_from(cls)
            .where(
                cls.submission_metadata["ipAddress"].as_string() == ip_address,
                cls.submitted_at >= since,
            )
        ).scalar_one()

    @classmethod
    def record_attempt(cls, db: Session, submission_id: str, attempted_at: datetime) -> None:
        """Atomically bump the attempt counter and timestamp of one submission.

        Note:
            Issued as a single UPDATE so concurrent attempts never lose
            increments. Caller commits.
        """
        db.execute(
            update(cls)
            .where(cls.id == submission_id)
            .values(
                submission_attempts=cls.submission_attempts + 1,
                last_submission_attempt=attempted_at,
            )
        )

    def mark_processed(self, processed_at: Optional[datetime] = None) -> None:
        """Flag the submission as handled by a downstream consumer."""
        self.is_processed = True
        self.processed_at = processed_at or utcnow()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase shape used by the API."""
        return {
            "id": self.id,
            "formId": self.form_id,
            "questions": self.questions,
            "answers": self.answers,
            "userEmail": self.user_email,
            "userAgent": self.user_agent,
            "ipAddress": self.ip_address,
            "submittedAt": isoformat(self.submitted_at),
            "sessionId": self.session_id,
            "submissionAttempts": self.submission_attempts,
            "lastSubmissionAttempt": isoformat(self.last_submission_attempt),
            "isProcessed": self.is_processed,
            "processedAt": isoformat(self.processed_at),
            "metadata": self.submission_metadata,
        }

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<FormSubmission(id={self.id}, "
            f"form_id={self.form_id}, "
            f"questions={self.question_count}, "
            f"processed={self.is_processed})>"
        )
