"""DraftSubmission model for transient, expiring partial submissions.

A draft is keyed by the client's session id. Every save overwrites the
previous snapshot; expired drafts stay invisible until the cleanup sweep
removes them.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    Index,
    String,
    Integer,
    DateTime,
    JSON,
    CheckConstraint,
    delete,
    func,
    select,
)
from sqlalchemy.orm import Mapped, mapped_column, Session

from app.models.database import Base, ensure_utc, isoformat, new_id


class DraftSubmission(Base):
    """Model for in-progress form answers.

    Attributes:
        id: UUID primary key
        session_id: Client session identifier (unique)
        form_id: Optional identifier of the form being filled
        answers: Partial answers keyed by question id
        current_step: Step the client was on when saving
        answer_count: Number of answer keys in the snapshot
        last_modified: When the draft was last saved
        expires_at: When the draft stops being served
        user_agent: User agent of the last save
        ip_address: IP address of the last save
        draft_metadata: Derived info stored in the ``metadata`` column
    """

    __tablename__ = "draft_submissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    session_id: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        unique=True,
        comment="Client session identifier"
    )
    form_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    answers: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    answer_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_modified: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        comment="When the draft was last saved"
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        comment="Drafts past this instant are treated as gone"
    )

    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    draft_metadata: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)

    __table_args__ = (
        CheckConstraint("current_step >= 0", name="ck_draft_current_step"),
        Index("idx_draft_session_form", "session_id", "form_id"),
    )

    @classmethod
    def find_active(cls, db: Session, session_id: str, now: datetime) -> Optional["DraftSubmission"]:
        """Return the draft for ``session_id`` if it has not expired."""
        return db.execute(
            select(cls).where(cls.session_id == session_id, cls.expires_at > now)
        ).scalar_one_or_none()

    @classmethod
    def find_for_update(cls, db: Session, session_id: str) -> Optional["DraftSubmission"]:
        """Return the draft for ``session_id`` with a row lock, expired or not."""
        return db.execute(
            select(cls).where(cls.session_id == session_id).with_for_update()
        ).scalar_one_or_none()

    @classmethod
    def delete_by_session(cls, db: Session, session_id: str) -> int:
        """Delete the draft of a session. Returns the number of rows removed."""
        result = db.execute(delete(cls).where(cls.session_id == session_id))
        return result.rowcount

    @classmethod
    def delete_expired(cls, db: Session, now: datetime) -> int:
        """Delete every draft whose expiry has passed."""
        result = db.execute(delete(cls).where(cls.expires_at < now))
        return result.rowcount

    @classmethod
    def statistics(cls, db: Session, now: datetime, form_id: Optional[str] = None) -> dict[str, Any]:
        """Aggregate counts and averages over non-expired drafts."""
        query = select(
            func.count(cls.id),
            func.avg(cls.current_step),
            func.avg(cls.answer_count),
            func.min(cls.last_modified),
            func.max(cls.last_modified),
        ).where(cls.expires_at > now)
        if form_id:
            query = query.where(cls.form_id == form_id)

        total, avg_step, avg_answers, oldest, newest = db.execute(query).one()
        return {
            "totalDrafts": total,
            "averageStep": float(avg_step or 0),
            "averageAnswers": float(avg_answers or 0),
            "oldestDraft": isoformat(oldest),
            "newestDraft": isoformat(newest),
        }

    def is_expired(self, now: datetime) -> bool:
        """Check whether the draft has passed its expiry."""
        return ensure_utc(self.expires_at) <= now

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase shape used by the API."""
        return {
            "sessionId": self.session_id,
            "formId": self.form_id,
            "answers": self.answers,
            "currentStep": self.current_step,
            "lastModified": isoformat(self.last_modified),
            "expiresAt": isoformat(self.expires_at),
        }

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<DraftSubmission(session_id={self.session_id[:12]}..., "
            f"form_id={self.form_id}, "
            f"current_step={self.current_step})>"
        )
