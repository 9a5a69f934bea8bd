"""Exception taxonomy shared by the form and draft services.

Rejections (validation and rate-limit) are final answers for the caller and
propagate unchanged to the HTTP layer. Store failures are wrapped in
PersistenceError so raw driver errors never reach a client.
"""

from typing import Optional


class SubmissionRejected(Exception):
    """Base class for user-facing rejections raised by the services."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FormValidationError(SubmissionRejected):
    """Raised when a questionnaire or its answers violate a validation rule."""
    pass


class InvalidSessionIdError(FormValidationError):
    """Raised when a draft session id has an invalid format."""
    pass


class RateLimitError(SubmissionRejected):
    """Raised when the submission guard throttles a session or IP.

    Attributes:
        retry_after: Suggested seconds to wait before retrying
    """

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


class NotFoundError(Exception):
    """Base class for lookups that matched nothing."""
    pass


class SubmissionNotFoundError(NotFoundError):
    """Raised when a submission id does not exist."""
    pass


class DraftNotFoundError(NotFoundError):
    """Raised when no draft exists for a session."""
    pass


class PersistenceError(Exception):
    """Raised when the database fails during a read operation."""
    pass
