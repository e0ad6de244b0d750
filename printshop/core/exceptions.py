"""
Error taxonomy shared by every workflow component.

All failures raised by the core belong to one of five kinds. Each concrete
exception carries its kind and a free-form context dictionary that is
logged and returned to API clients.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Category of a workflow failure."""

    INVALID_TRANSITION = "InvalidTransition"
    VALIDATION_FAILED = "ValidationFailed"
    CONCURRENT_MODIFICATION = "ConcurrentModification"
    DEPENDENCY_FAILURE = "DependencyFailure"
    NOT_FOUND = "NotFound"


class WorkflowError(Exception):
    """Base exception for print-shop workflow errors."""

    kind: ErrorKind = ErrorKind.DEPENDENCY_FAILURE

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for logging and API responses."""
        return {
            "error": self.kind.value,
            "message": self.message,
            "context": {key: _jsonable(value) for key, value in self.context.items()},
        }


class InvalidTransitionError(WorkflowError):
    """Raised when an action is not allowed from the current status or role."""

    kind = ErrorKind.INVALID_TRANSITION


class ValidationFailedError(WorkflowError):
    """Raised when the payload of an operation is incomplete or inconsistent."""

    kind = ErrorKind.VALIDATION_FAILED


class InvalidRateError(ValidationFailedError):
    """Raised when an exchange rate is zero or negative."""

    pass


class ConcurrentModificationError(WorkflowError):
    """Raised when the order status changed between read and write."""

    kind = ErrorKind.CONCURRENT_MODIFICATION


class DependencyFailureError(WorkflowError):
    """Raised when the persistence layer or another dependency fails."""

    kind = ErrorKind.DEPENDENCY_FAILURE


class NotFoundError(WorkflowError):
    """Raised when a referenced entity does not exist."""

    kind = ErrorKind.NOT_FOUND


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    return str(value)
