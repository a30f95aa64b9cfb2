"""
Typed practice-engine errors and standardized error messages.

Every failure the engine reports to its caller is a ``PracticeError`` carrying
one of four codes. The HTTP layer maps codes to status codes; use cases and
storage adapters never raise HTTP exceptions themselves.

Error Message Format Guidelines:
- Use sentence case (capitalize first letter only)
- End with a period for complete sentences
- Never include storage details (SQL, driver messages) in user-facing text

Usage:
    from qbank.core.error_responses import ErrorMessages, raise_not_found

    if session is None:
        raise_not_found(ErrorMessages.PRACTICE_SESSION_NOT_FOUND)

    raise_conflict(ErrorMessages.SESSION_ALREADY_ENDED)
"""

import enum
from typing import Dict, List, NoReturn, Optional

from fastapi import status


class ErrorCode(str, enum.Enum):
    """Error taxonomy surfaced by the practice engine."""

    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# HTTP status used when a PracticeError crosses the API boundary
HTTP_STATUS_BY_CODE: Dict[ErrorCode, int] = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class PracticeError(Exception):
    """Error raised by practice use cases and storage adapters.

    Attributes:
        code: Error taxonomy code
        message: User-facing message
        field_errors: Optional per-field validation messages
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        field_errors: Optional[Dict[str, List[str]]] = None,
    ):
        self.code = ErrorCode(code)
        self.message = message
        self.field_errors = field_errors
        super().__init__(message)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CODE[self.code]

    def to_dict(self) -> dict:
        body: dict = {"code": self.code.value, "message": self.message}
        if self.field_errors:
            body["field_errors"] = self.field_errors
        return body

    def __repr__(self) -> str:
        return f"PracticeError(code={self.code.value!r}, message={self.message!r})"


class ErrorMessages:
    """Centralized error message constants and templates.

    Naming Convention:
    - Constants: SCREAMING_SNAKE_CASE for static messages
    - Methods: snake_case for templates that accept parameters
    """

    # ==========================================================================
    # Not Found
    # ==========================================================================
    QUESTION_NOT_FOUND = "Question not found."
    CHOICE_NOT_FOUND = "Choice not found."
    PRACTICE_SESSION_NOT_FOUND = "Practice session not found."
    NO_QUESTIONS_MATCH_FILTERS = "No published questions match the selected filters."
    QUESTION_NOT_IN_SESSION = "Question is not part of this practice session."
    IDEMPOTENCY_KEY_NOT_FOUND = "Idempotency key not found."

    # ==========================================================================
    # Conflict
    # ==========================================================================
    SESSION_ALREADY_ENDED = "Practice session already ended."
    MARK_REQUIRES_EXAM_MODE = "Mark for review is only available in exam mode."
    IDEMPOTENCY_WAIT_TIMED_OUT = (
        "Request timed out waiting for idempotency key. The concurrent request "
        "may still be in progress or may have failed."
    )

    # ==========================================================================
    # Validation
    # ==========================================================================
    INVALID_INPUT = "Invalid input."

    # ==========================================================================
    # Internal
    # ==========================================================================
    SESSION_STATE_CONTENTION = (
        "Could not record practice session state due to concurrent updates. "
        "Please try again."
    )
    SESSION_DID_NOT_END = "Practice session did not end."
    ATTEMPT_ROLLBACK_FAILED = (
        "Failed to roll back attempt after session state persistence error."
    )
    CACHED_RESULT_INVALID = "Cached idempotency result is invalid."
    UNEXPECTED_ERROR = "An unexpected error occurred. Please try again later."

    @staticmethod
    def question_invalid(question_id: str, correct_count: int) -> str:
        """Message when a question does not have exactly one correct choice."""
        return (
            f"Question {question_id} must have exactly 1 correct choice "
            f"(found {correct_count})."
        )

    @staticmethod
    def too_many_choices(question_id: str) -> str:
        """Message when a question has more choices than display labels."""
        return f"Question {question_id} has too many choices."

    @staticmethod
    def storage_operation_failed(operation: str) -> str:
        """Generic message for storage failures, without storage details."""
        return f"Failed to {operation}. Please try again later."


# ==============================================================================
# Builder Functions
# ==============================================================================


def raise_not_found(detail: str) -> NoReturn:
    """Raise a NOT_FOUND error (absent, unpublished, or not owned by caller)."""
    raise PracticeError(ErrorCode.NOT_FOUND, detail)


def raise_conflict(detail: str) -> NoReturn:
    """Raise a CONFLICT error (request conflicts with current state)."""
    raise PracticeError(ErrorCode.CONFLICT, detail)


def raise_validation_error(
    detail: str,
    field_errors: Optional[Dict[str, List[str]]] = None,
) -> NoReturn:
    """Raise a VALIDATION_ERROR for malformed filters, counts or modes."""
    raise PracticeError(ErrorCode.VALIDATION_ERROR, detail, field_errors)


def raise_internal_error(detail: str) -> NoReturn:
    """Raise an INTERNAL_ERROR. Keep ``detail`` generic; log specifics separately."""
    raise PracticeError(ErrorCode.INTERNAL_ERROR, detail)
