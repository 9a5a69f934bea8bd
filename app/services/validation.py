"""Questionnaire and answer validation for form submissions.

This module checks a client-supplied questionnaire against its own answers
and strips angle brackets from submitted strings. Validation stops at the
first violation and raises FormValidationError with a message citing the
offending question's title.
"""

import re
from typing import Any, Mapping, Optional, Sequence

from app.schemas.forms import QuestionType
from app.services.errors import FormValidationError
from app.logging_config import get_logger

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

QUESTION_TYPES = frozenset(question_type.value for question_type in QuestionType)


def is_blank(value: Any) -> bool:
    """Check whether an answer counts as not given (None or empty string)."""
    return value is None or value == ""


def is_valid_email(value: Any) -> bool:
    """Check a value against the permissive ``local@domain.tld`` pattern."""
    return isinstance(value, str) and EMAIL_PATTERN.fullmatch(value) is not None


class FormValidator:
    """Service for validating questionnaires and their answers."""

    def __init__(self, max_questions: int = 50, max_answer_length: int = 1000):
        """Initialize validator limits.

        Args:
            max_questions: Maximum questions per submission
            max_answer_length: Maximum characters in a text answer
        """
        self.max_questions = max_questions
        self.max_answer_length = max_answer_length

    def validate_submission(
        self,
        questions: Any,
        answers: Any,
        user_email: Optional[str] = None
    ) -> None:
        """Validate a complete submission including the submitter email.

        Raises:
            FormValidationError: On the first violation found
        """
        self.validate(questions, answers)
        if user_email and not is_valid_email(user_email):
            raise FormValidationError("Invalid email format")

    def validate(self, questions: Any, answers: Any) -> None:
        """Validate a questionnaire and the answers given to it.

        Question checks run first; answer checks only run once the
        questionnaire itself is well formed.

        Args:
            questions: List of question mappings
            answers: Mapping of question id to answer

        Raises:
            FormValidationError: On the first violation found

        Example:
            >>> validator = FormValidator()
            >>> validator.validate(
            ...     [{"id": "name", "type": "text", "title": "Name", "required": True}],
            ...     {"name": "Ann"},
            ... )
        """
        self._validate_questions(questions)
        self._validate_answers(answers, questions)

    def _validate_questions(self, questions: Any) -> None:
        if not isinstance(questions, (list, tuple)):
            raise FormValidationError("Questions must be an array")

        if len(questions) == 0:
            raise FormValidationError("At least one question is required")

        if len(questions) > self.max_questions:
            raise FormValidationError(f"Maximum {self.max_questions} questions allowed")

        seen_ids = set()
        for question in questions:
            if not isinstance(question, Mapping):
                raise FormValidationError("Each question must be an object")

            question_id = question.get("id")
            if not question_id or not isinstance(question_id, str):
                raise FormValidationError("Each question must have a valid id")

            if question_id in seen_ids:
                raise FormValidationError(f"Duplicate question id: {question_id}")
            seen_ids.add(question_id)

            question_type = question.get("type")
            if question_type not in QUESTION_TYPES:
                raise FormValidationError(f"Invalid question type: {question_type}")

            title = question.get("title")
            if not title or not isinstance(title, str):
                raise FormValidationError("Each question must have a title")

            if question_type == QuestionType.MULTIPLE_CHOICE.value:
                options = question.get("options")
                if not isinstance(options, (list, tuple)) or len(options) == 0:
                    raise FormValidationError("Multiple choice questions must have options")

    def _validate_answers(self, answers: Any, questions: Sequence[Mapping[str, Any]]) -> None:
        if not isinstance(answers, Mapping):
            raise FormValidationError("Answers must be an object")

        questions_by_id = {question["id"]: question for question in questions}

        for question_id, answer in answers.items():
            question = questions_by_id.get(question_id)
            if question is None:
                raise FormValidationError(f"Answer provided for unknown question: {question_id}")

            if question.get("required") and is_blank(answer):
                raise FormValidationError(f"Required question '{question['title']}' must be answered")

            # Empty optional answers are skipped
            if is_blank(answer):
                continue

            self._validate_answer_by_type(question, answer)

        # Required questions absent from the mapping entirely
        for question in questions:
            if question.get("required") and question["id"] not in answers:
                raise FormValidationError(f"Required question '{question['title']}' is missing")

    def _validate_answer_by_type(self, question: Mapping[str, Any], answer: Any) -> None:
        title = question["title"]
        question_type = question["type"]

        if not isinstance(answer, str):
            raise FormValidationError(f"Answer for '{title}' must be a string")

        if question_type == QuestionType.TEXT.value:
            if len(answer) > self.max_answer_length:
                raise FormValidationError(f"Answer for '{title}' is too long")
        elif question_type == QuestionType.EMAIL.value:
            if not is_valid_email(answer):
                raise FormValidationError(f"Answer for '{title}' must be a valid email")
        elif question_type == QuestionType.MULTIPLE_CHOICE.value:
            if answer not in question["options"]:
                raise FormValidationError(f"Answer for '{title}' must be one of the provided options")
        else:
            # Unreachable once _validate_questions has passed
            logger.error(f"Unknown question type: {question_type}")
            raise FormValidationError(f"Unknown question type: {question_type}")

    @staticmethod
    def sanitize(value: Any) -> Any:
        """Strip angle brackets and surrounding whitespace from strings.

        Dicts are walked recursively. Every other value, lists included,
        is returned unchanged.

        Example:
            >>> FormValidator.sanitize({"bio": "  <script>x</script> "})
            {'bio': 'scriptx/script'}
        """
        if isinstance(value, str):
            return value.replace("<", "").replace(">", "").strip()
        if isinstance(value, Mapping):
            return {key: FormValidator.sanitize(item) for key, item in value.items()}
        return value
