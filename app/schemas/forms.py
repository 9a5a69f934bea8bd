"""Pydantic schemas for form submission requests and responses.

Request models reject unknown fields and use the camelCase names the
frontend sends. Structural rules that depend on configuration (question
count, answer length, required answers) are enforced by FormValidator.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class QuestionType(str, Enum):
    """Valid question types in a questionnaire."""
    TEXT = "text"
    EMAIL = "email"
    MULTIPLE_CHOICE = "multiple-choice"


class Question(BaseModel):
    """A single question of a submitted questionnaire.

    Attributes:
        id: Identifier unique within the questionnaire
        type: Question type (text/email/multiple-choice)
        title: Question text shown in validation errors
        required: Whether an answer must be given
        options: Allowed answers for multiple-choice questions
        placeholder: Display-only placeholder text
        helper_text: Display-only helper text
    """
    id: str = Field(..., max_length=100, description="Question identifier")
    type: QuestionType = Field(..., description="Question type")
    title: str = Field(..., max_length=500, description="Question title")
    required: bool = Field(default=False, description="Whether an answer is required")
    options: Optional[list[str]] = Field(None, description="Choices for multiple-choice questions")
    placeholder: Optional[str] = Field(None, max_length=200)
    helper_text: Optional[str] = Field(None, alias="helperText", max_length=300)

    model_config = {
        "populate_by_name": True,
        "extra": "forbid",
    }

    @field_validator("options")
    @classmethod
    def options_max_length(cls, v):
        """Ensure each option is at most 200 characters."""
        if v is not None:
            for option in v:
                if len(option) > 200:
                    raise ValueError("Each option must be at most 200 characters")
        return v

    def to_document(self) -> dict[str, Any]:
        """Plain mapping as embedded in a stored submission."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FormSubmissionRequest(BaseModel):
    """Body of a form submission.

    Attributes:
        form_id: Optional form identifier
        questions: Questionnaire answered by the user
        answers: Answers keyed by question id
        user_email: Optional submitter email
        user_agent: Optional user agent override
        ip_address: Optional IP address override
        submitted_at: Client-side submission timestamp (ignored; the server stamps its own)
        session_id: Session identifier enabling submission protection
        convert_from_draft: Delete the session's draft after a successful submit
        metadata: Extra provenance fields
    """
    form_id: Optional[str] = Field(None, alias="formId", max_length=100)
    questions: list[Question]
    answers: dict[str, Any]
    user_email: Optional[str] = Field(None, alias="userEmail", max_length=320)
    user_agent: Optional[str] = Field(None, alias="userAgent", max_length=500)
    ip_address: Optional[str] = Field(None, alias="ipAddress", max_length=64)
    submitted_at: Optional[str] = Field(None, alias="submittedAt")
    session_id: Optional[str] = Field(None, alias="sessionId", max_length=200)
    convert_from_draft: bool = Field(default=False, alias="convertFromDraft")
    metadata: Optional[dict[str, Any]] = None

    model_config = {
        "populate_by_name": True,
        "extra": "forbid",
    }


class FormSubmissionResponse(BaseModel):
    """Result envelope of a form submission."""
    success: bool
    message: str
    submission_id: Optional[str] = Field(None, alias="submissionId")
    errors: Optional[list[str]] = None

    model_config = {"populate_by_name": True}


class SubmissionListResponse(BaseModel):
    """A page of submissions plus the unpaginated total."""
    success: bool = True
    message: str = "Submissions retrieved successfully"
    submissions: list[dict[str, Any]]
    total: int
    limit: int
    offset: int


class SubmissionResponse(BaseModel):
    """A single submission."""
    success: bool = True
    message: str = "Submission retrieved successfully"
    submission: dict[str, Any]


class DailyCount(BaseModel):
    """Number of submissions on one UTC calendar day."""
    date: str
    count: int


class FormStatisticsResponse(BaseModel):
    """Aggregate submission statistics."""
    success: bool = True
    message: str = "Statistics retrieved successfully"
    total_submissions: int = Field(..., alias="totalSubmissions")
    submissions_by_date: list[DailyCount] = Field(..., alias="submissionsByDate")
    average_questions_per_submission: float = Field(..., alias="averageQuestionsPerSubmission")

    model_config = {"populate_by_name": True}
