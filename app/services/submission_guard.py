"""Submission protection against rapid resubmission and flooding.

The guard reads recent submission history back from the database on every
call; no throttling state is kept in process, so all instances of the
service share one view of it.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.models.database import ensure_utc, utcnow
from app.models.submission import FormSubmission
from app.services.errors import RateLimitError
from app.logging_config import get_logger

logger = get_logger(__name__)


class SubmissionGuard:
    """Throttle submissions per session and per IP address.

    Policy, evaluated against the trailing window (5 minutes by default):
    1. A session must wait the minimum interval (30s) between attempts
    2. A session may make at most max_session_attempts (3) attempts
    3. An IP may submit at most max_ip_submissions (10) times

    Passing the session checks bumps the attempt counter on the session's
    latest submission.
    """

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        """Initialize guard.

        Args:
            db: SQLAlchemy database session
            settings: Thresholds (defaults to application settings)
        """
        self.db = db
        settings = settings or get_settings()
        self.window = timedelta(seconds=settings.submission_window_seconds)
        self.min_interval = timedelta(seconds=settings.submission_min_interval_seconds)
        self.max_session_attempts = settings.max_session_attempts
        self.max_ip_submissions = settings.max_ip_submissions

    def check_allowed(
        self,
        session_id: str,
        ip_address: Optional[str],
        now: Optional[datetime] = None
    ) -> None:
        """Decide whether a new submission attempt may proceed.

        Args:
            session_id: Client session identifier
            ip_address: Client IP address (IP check skipped when unknown)
            now: Evaluation time (defaults to current UTC time)

        Raises:
            RateLimitError: If the session or IP is throttled
        """
        now = now or utcnow()
        since = now - self.window

        self._check_session(session_id, now, since)

        if ip_address:
            self._check_ip(ip_address, since)

    def _check_session(self, session_id: str, now: datetime, since: datetime) -> None:
        recent = FormSubmission.recent_for_session(self.db, session_id, since)
        if not recent:
            return

        latest = recent[0]
        elapsed = now - ensure_utc(latest.last_submission_attempt)

        if elapsed < self.min_interval:
            wait_seconds = max(1, int((self.min_interval - elapsed).total_seconds()))
            logger.info(
                f"Submission throttled for session {session_id[:12]}: "
                f"last attempt {int(elapsed.total_seconds())}s ago",
                extra={"session_id": session_id}
            )
            raise RateLimitError(
                f"Please wait {wait_seconds} seconds before submitting again",
                retry_after=wait_seconds
            )

        if len(recent) >= self.max_session_attempts:
            window_minutes = int(self.window.total_seconds() // 60)
            logger.warning(
                f"Too many attempts for session {session_id[:12]}: {len(recent)} "
                f"in the last {window_minutes} minutes",
                extra={"session_id": session_id}
            )
            raise RateLimitError(
                f"Too many submission attempts. Please wait {window_minutes} minutes before trying again",
                retry_after=int(self.window.total_seconds())
            )

        FormSubmission.record_attempt(self.db, latest.id, now)
        self.db.commit()

    def _check_ip(self, ip_address: str, since: datetime) -> None:
        count = FormSubmission.count_recent_for_ip(self.db, ip_address, since)
        if count >= self.max_ip_submissions:
            logger.warning(f"Too many submissions from IP {ip_address}: {count}")
            raise RateLimitError(
                "Too many submissions from this IP address. Please try again later",
                retry_after=int(self.window.total_seconds())
            )
