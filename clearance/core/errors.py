"""Error taxonomy and the uniform operation result.

Internals raise ``WorkflowError`` subclasses; the workflow engine converts
them into ``WorkflowResult`` values at its public boundary so transport
layers only ever see ``{success, message, data, error}``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Kinds of workflow failures."""

    VALIDATION_ERROR = "validation_error"     # Malformed or missing input
    NOT_FOUND = "not_found"                   # Unknown submission/office/student
    FORBIDDEN = "forbidden"                   # Authorization or office isolation
    OUT_OF_SEQUENCE = "out_of_sequence"       # Gating invariant violated
    DUPLICATE_PENDING = "duplicate_pending"   # Outstanding submission exists
    ALREADY_ACTIONED = "already_actioned"     # Lost a state-transition race
    STORAGE_FAILURE = "storage_failure"       # Persistence collaborator failed


class WorkflowError(Exception):
    """Base class for workflow failures."""

    kind: ErrorKind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WorkflowError):
    kind = ErrorKind.VALIDATION_ERROR


class NotFound(WorkflowError):
    kind = ErrorKind.NOT_FOUND


class Forbidden(WorkflowError):
    kind = ErrorKind.FORBIDDEN


class OutOfSequence(WorkflowError):
    kind = ErrorKind.OUT_OF_SEQUENCE


class DuplicatePending(WorkflowError):
    kind = ErrorKind.DUPLICATE_PENDING


class AlreadyActioned(WorkflowError):
    kind = ErrorKind.ALREADY_ACTIONED


class StorageFailure(WorkflowError):
    kind = ErrorKind.STORAGE_FAILURE


@dataclass
class WorkflowResult:
    """Uniform result returned by every workflow operation."""

    success: bool
    message: str
    data: Any = None
    error: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "WorkflowResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def failure(cls, error: WorkflowError) -> "WorkflowResult":
        return cls(success=False, message=error.message, error=error.kind)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = self.error.value
        return result
