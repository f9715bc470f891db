"""
Exception classes for the evaluation engines.

Every error carries a machine readable ``error_code``, a ``details`` dict
for the caller and the HTTP status a route handler should answer with.
"""

from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class EvaluationError(Exception):
    """Base exception class for all evaluation errors"""

    status_code = 400

    def __init__(self, message: str, error_code: str = None, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

        logger.warning(f"{self.__class__.__name__}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


# ==============================================================================
# NotFound
# ==============================================================================

class NotFoundError(EvaluationError):
    """A referenced form, faculty member, class, evaluation or year does not exist"""
    status_code = 404


class FormNotFound(NotFoundError):
    def __init__(self, form_id: Any):
        super().__init__(f"Evaluation form not found: {form_id}", "FORM_NOT_FOUND", {"form_id": form_id})


class FacultyNotFound(NotFoundError):
    def __init__(self, faculty_id: Any):
        super().__init__(f"Faculty member not found or inactive: {faculty_id}", "FACULTY_NOT_FOUND",
                         {"faculty_id": faculty_id})


class ClassNotFound(NotFoundError):
    def __init__(self, class_ids: Any):
        super().__init__(f"Class not found: {class_ids}", "CLASS_NOT_FOUND", {"class_ids": class_ids})


class EvaluationNotFound(NotFoundError):
    def __init__(self, evaluation_id: Any):
        super().__init__(f"Evaluation not found: {evaluation_id}", "EVALUATION_NOT_FOUND",
                         {"evaluation_id": evaluation_id})


class AcademicYearNotFound(NotFoundError):
    def __init__(self, year_id: Any):
        super().__init__(f"Academic year not found: {year_id}", "ACADEMIC_YEAR_NOT_FOUND",
                         {"academic_year_id": year_id})


# ==============================================================================
# InvalidState
# ==============================================================================

class InvalidStateError(EvaluationError):
    """The entity exists but is in a state that forbids the operation"""
    status_code = 409


class FormNotActive(InvalidStateError):
    def __init__(self, form_id: Any, status: str):
        super().__init__(f"Evaluation form {form_id} is {status} and cannot be assigned", "FORM_NOT_ACTIVE",
                         {"form_id": form_id, "status": status})


class AlreadySubmitted(InvalidStateError):
    def __init__(self, evaluation_id: Any):
        super().__init__("Evaluation already submitted", "ALREADY_SUBMITTED", {"evaluation_id": evaluation_id})


class FormInUse(InvalidStateError):
    def __init__(self, form_id: Any, evaluation_count: int):
        super().__init__(
            "Cannot delete form because it has related records (evaluations, responses)",
            "FORM_IN_USE", {"form_id": form_id, "evaluations": evaluation_count})


# ==============================================================================
# Others
# ==============================================================================

class DeadlineExpired(EvaluationError):
    status_code = 410

    def __init__(self, evaluation_id: Any, due_date: Any):
        super().__init__("Evaluation deadline has passed", "DEADLINE_EXPIRED",
                         {"evaluation_id": evaluation_id, "due_date": str(due_date)})


class NoEligibleStudents(EvaluationError):
    status_code = 422

    def __init__(self, skipped: Optional[list] = None):
        super().__init__(
            "None of the selected students have this faculty assigned as their teacher "
            "for the specified academic period.",
            "NO_ELIGIBLE_STUDENTS", {"skipped": skipped or []})


class ValidationError(EvaluationError):
    """Malformed input"""
    status_code = 400

    def __init__(self, message: str, field: str = None):
        super().__init__(message, "VALIDATION_ERROR", {"field": field} if field else {})


class TransientStoreError(EvaluationError):
    """The underlying store failed (connection, lock, constraint)"""
    status_code = 503

    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"Store error during {operation}: {cause}", "STORE_ERROR", {"operation": operation})
