"""Submission store interface.

Defines the persistence contract the workflow engine depends on, along with
the immutable record types it returns. Every read filters out soft-deleted
rows unless stated otherwise; every state change is a conditional update
scoped to one record so concurrent writers cannot both win.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from clearance.core.errors import ValidationError
from clearance.core.workflow.states import (
    AssignmentMode,
    Pooled,
    RequestStatus,
    RoutedTo,
    SubmissionStatus,
)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class DocumentRef:
    """Reference to an uploaded document. Storage happens elsewhere."""

    file_name: str
    file_url: str
    file_type: str

    def to_dict(self) -> Dict[str, str]:
        return {"file_name": self.file_name, "file_url": self.file_url, "file_type": self.file_type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentRef":
        return cls(
            file_name=data.get("file_name", ""),
            file_url=data.get("file_url", ""),
            file_type=data.get("file_type", ""),
        )


@dataclass(frozen=True)
class SubmissionRecord:
    """Snapshot of a clearance submission."""

    id: str
    request_id: str
    student_id: str
    student_name: str
    student_matric: str
    office_id: str
    step_number: int
    attempt: int
    assignment: AssignmentMode
    status: SubmissionStatus
    documents: Tuple[DocumentRef, ...] = ()
    officer_id: Optional[str] = None
    comment: Optional[str] = None
    student_department_id: Optional[str] = None
    student_faculty_id: Optional[str] = None
    created_at: Optional[datetime] = None
    actioned_at: Optional[datetime] = None
    is_deleted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "student_id": self.student_id,
            "student_name": self.student_name,
            "student_matric": self.student_matric,
            "student_department_id": self.student_department_id,
            "student_faculty_id": self.student_faculty_id,
            "office_id": self.office_id,
            "step_number": self.step_number,
            "attempt": self.attempt,
            "assignment_mode": self.assignment.mode,
            "officer_id": self.officer_id,
            "documents": [d.to_dict() for d in self.documents],
            "status": self.status.value,
            "comment": self.comment,
            "created_at": _iso(self.created_at),
            "actioned_at": _iso(self.actioned_at),
        }


@dataclass(frozen=True)
class RequestRecord:
    """Snapshot of a student's clearance request."""

    id: str
    student_id: str
    status: RequestStatus
    current_step_number: int
    completed_at: Optional[datetime] = None
    nysc_accessed: bool = False
    is_deleted: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "status": self.status.value,
            "current_step_number": self.current_step_number,
            "completed_at": _iso(self.completed_at),
            "nysc_accessed": self.nysc_accessed,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class NewSubmission:
    """Values for a submission about to be created."""

    request_id: str
    student_id: str
    student_name: str
    student_matric: str
    office_id: str
    step_number: int
    assignment: AssignmentMode = field(default_factory=Pooled)
    documents: List[DocumentRef] = field(default_factory=list)
    student_department_id: Optional[str] = None
    student_faculty_id: Optional[str] = None

    @property
    def officer_id(self) -> Optional[str]:
        return self.assignment.officer_id if isinstance(self.assignment, RoutedTo) else None


class SubmissionStore(ABC):
    """Persistence contract for submissions and clearance requests."""

    # Requests

    @abstractmethod
    def get_active_request(self, student_id: str) -> Optional[RequestRecord]:
        """Get the student's non-deleted request, if any."""

    @abstractmethod
    def create_request(self, student_id: str, current_step_number: int) -> RequestRecord:
        """Create a PENDING request.

        Raises:
            ValidationError: If the student already has an active request
        """

    def get_or_create_request(self, student_id: str, current_step_number: int) -> RequestRecord:
        """Return the active request, creating it when missing.

        A concurrent creator may win the race; the winner's row is returned.
        """
        request = self.get_active_request(student_id)
        if request is not None:
            return request
        try:
            return self.create_request(student_id, current_step_number)
        except ValidationError:
            request = self.get_active_request(student_id)
            if request is None:
                raise
            return request

    @abstractmethod
    def mark_request_in_progress(self, request_id: str) -> bool:
        """Move a PENDING request to IN_PROGRESS. Returns True if it changed."""

    @abstractmethod
    def update_request_step(self, request_id: str, current_step_number: int) -> bool:
        """Set the current step of a request that is not COMPLETED."""

    @abstractmethod
    def complete_request(self, request_id: str, completed_at: datetime) -> bool:
        """Mark a request COMPLETED unless it already is. Returns True if it changed."""

    @abstractmethod
    def mark_nysc_accessed(self, request_id: str) -> None:
        """Record that the NYSC form was accessed."""

    @abstractmethod
    def soft_delete_request(self, request_id: str) -> int:
        """Soft-delete a request and its submissions. Returns rows affected."""

    @abstractmethod
    def list_requests(self) -> List[RequestRecord]:
        """All active requests, newest first."""

    # Submissions

    @abstractmethod
    def create_submission(self, new: NewSubmission) -> SubmissionRecord:
        """Insert a PENDING submission with the next attempt number.

        Raises:
            DuplicatePending: If a concurrent submission took the same attempt
        """

    @abstractmethod
    def get_submission(self, submission_id: str) -> Optional[SubmissionRecord]:
        """Get an active submission by id."""

    @abstractmethod
    def latest_submissions(self, student_id: str) -> Dict[str, SubmissionRecord]:
        """Latest active submission per office for a student, keyed by office id."""

    @abstractmethod
    def transition_submission(
        self,
        submission_id: str,
        *,
        expected_status: SubmissionStatus,
        new_status: SubmissionStatus,
        officer_id: str,
        comment: Optional[str],
        actioned_at: datetime,
    ) -> bool:
        """Conditionally update a submission's status.

        Returns False when the stored status no longer equals ``expected_status``.
        """

    @abstractmethod
    def list_submissions(
        self,
        *,
        office_id: Optional[str] = None,
        status: Optional[SubmissionStatus] = None,
        department_id: Optional[str] = None,
        newest_first: bool = False,
    ) -> List[SubmissionRecord]:
        """Active submissions filtered by office, status and student department."""

    @abstractmethod
    def count_by_status(
        self,
        office_id: str,
        department_id: Optional[str] = None,
    ) -> Dict[SubmissionStatus, int]:
        """Count active submissions of an office per status."""
