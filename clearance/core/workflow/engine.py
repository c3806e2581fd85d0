"""Clearance workflow engine.

Provides the operations behind the student and officer clearance screens:
- Submitting documents to an office, gated by the office sequence
- Approving and rejecting submissions with office isolation
- Aggregating a student's progress and deciding completion
- Office queues, history and statistics

Every public operation returns a ``WorkflowResult``; ``WorkflowError``
raised internally is converted at this boundary and never escapes.
"""

import logging
from datetime import datetime
from functools import wraps
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union
from urllib.parse import urlparse

from clearance.core.access.policy import OfficerAccessPolicy
from clearance.core.errors import (
    AlreadyActioned,
    DuplicatePending,
    Forbidden,
    NotFound,
    OutOfSequence,
    StorageFailure,
    ValidationError,
    WorkflowError,
    WorkflowResult,
)
from clearance.core.identity import OfficerProfile, StudentProfile
from clearance.core.offices import ClearanceOffice, OfficeRegistry
from clearance.db.models.notification import NotificationEventType
from clearance.db.store import DocumentRef, NewSubmission, SubmissionRecord, SubmissionStore
from clearance.services.notifications import NotificationDispatcher
from . import status as progress
from .machine import SubmissionStateMachine, TransitionError
from .states import (
    RequestStatus,
    RoutedTo,
    SubmissionStatus,
    SubmissionTransition,
    resolve_assignment,
)

logger = logging.getLogger(__name__)

DocumentInput = Union[DocumentRef, Mapping[str, Any]]


def workflow_operation(func: Callable[..., WorkflowResult]) -> Callable[..., WorkflowResult]:
    """Convert ``WorkflowError`` raised by an engine operation into a failed result."""

    @wraps(func)
    def wrapper(self, *args, **kwargs) -> WorkflowResult:
        try:
            return func(self, *args, **kwargs)
        except WorkflowError as e:
            logger.warning(f"{func.__name__} failed ({e.kind.value}): {e.message}")
            return WorkflowResult.failure(e)

    return wrapper


class ClearanceWorkflowEngine:
    """
    Ordered multi-office clearance workflow.

    Handles:
    - Sequential gating: step N opens once every earlier office is approved
    - One outstanding submission per student and office
    - Exactly-once approve/reject through conditional store updates
    - Monotonic request completion
    """

    def __init__(
        self,
        store: SubmissionStore,
        registry: OfficeRegistry,
        policy: Optional[OfficerAccessPolicy] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        """
        Initialize the workflow engine.

        Args:
            store: Persistence for submissions and requests
            registry: Ordered clearance offices
            policy: Officer access rules; defaults to no oversight offices
            dispatcher: Notification fan-out; defaults to logging only
        """
        self.store = store
        self.registry = registry
        self.policy = policy or OfficerAccessPolicy(registry)
        self.dispatcher = dispatcher or NotificationDispatcher()

    # ------------------------------------------------------------------
    # Student operations
    # ------------------------------------------------------------------

    @workflow_operation
    def initiate_clearance(self, student: StudentProfile) -> WorkflowResult:
        """Explicitly start a student's clearance."""
        validate_student(student)

        if self.store.get_active_request(student.id) is not None:
            raise ValidationError("Clearance has already been initiated")

        request = self.store.create_request(student.id, self.registry.first_step)
        logger.info(f"Clearance initiated for student {student.id}")

        first_office = self.registry.list_offices()[0]
        self.dispatcher.dispatch(
            NotificationEventType.CLEARANCE_INITIATED,
            student.id,
            {"student_name": student.name, "office_name": first_office.name},
        )
        return WorkflowResult.ok("Clearance initiated", request.to_dict())

    @workflow_operation
    def submit_to_office(
        self,
        student: StudentProfile,
        office_id: str,
        documents: Sequence[DocumentInput],
        officer_id: Optional[str] = None,
    ) -> WorkflowResult:
        """
        Submit documents to an office.

        Args:
            student: The submitting student
            office_id: Office id or alias
            documents: Non-empty list of document references
            officer_id: Route the submission to one officer instead of the office pool

        Returns:
            Result with ``{submission_id, office_id, attempt}`` on success
        """
        office = self.registry.require(office_id)
        validate_student(student)
        if office.is_department_specific and not student.department_id:
            raise ValidationError(f"A department is required to submit to {office.name}")
        refs = _validate_documents(documents)

        latest = self.store.latest_submissions(student.id)
        self._check_gating(latest, office)

        previous = latest.get(office.id)
        if previous is not None and previous.status == SubmissionStatus.PENDING:
            raise DuplicatePending(f"You already have a pending submission with {office.name}")
        if previous is not None and previous.status == SubmissionStatus.APPROVED:
            raise AlreadyActioned(f"{office.name} has already approved your clearance")

        request = self.store.get_or_create_request(
            student.id, progress.current_step_number(self.registry, latest)
        )
        if request.status == RequestStatus.PENDING:
            self.store.mark_request_in_progress(request.id)

        submission = self.store.create_submission(NewSubmission(
            request_id=request.id,
            student_id=student.id,
            student_name=student.name,
            student_matric=student.matric_number,
            student_department_id=student.department_id,
            student_faculty_id=student.faculty_id,
            office_id=office.id,
            step_number=office.step_number,
            assignment=resolve_assignment(officer_id),
            documents=refs,
        ))
        logger.info(
            f"Student {student.id} submitted {len(refs)} documents to {office.id} "
            f"(attempt {submission.attempt}, {submission.assignment.mode})"
        )

        resubmission = previous is not None and previous.status == SubmissionStatus.REJECTED
        self._notify_submission(office, submission, resubmission)

        return WorkflowResult.ok(
            f"Documents submitted to {office.name}",
            {
                "submission_id": submission.id,
                "office_id": office.id,
                "attempt": submission.attempt,
            },
        )

    @workflow_operation
    def get_student_status(self, student_id: str) -> WorkflowResult:
        """Per-office breakdown and overall progress for a student."""
        if not student_id:
            raise ValidationError("Student id is required")

        latest = self.store.latest_submissions(student_id)
        request = self.store.get_active_request(student_id)
        return WorkflowResult.ok(
            "Clearance status retrieved",
            progress.build_student_status(self.registry, student_id, latest, request),
        )

    @workflow_operation
    def can_access_final_forms(self, student_id: str) -> WorkflowResult:
        if not student_id:
            raise ValidationError("Student id is required")

        request = self.store.get_active_request(student_id)
        allowed = request is not None and request.status == RequestStatus.COMPLETED
        message = "Final forms are available" if allowed else "Clearance must be completed first"
        return WorkflowResult.ok(message, allowed)

    # ------------------------------------------------------------------
    # Officer operations
    # ------------------------------------------------------------------

    @workflow_operation
    def approve_submission(
        self,
        submission_id: str,
        officer: OfficerProfile,
        comment: Optional[str] = None,
    ) -> WorkflowResult:
        """Approve a pending submission and advance the student's request."""
        submission, office = self._action_submission(
            submission_id, officer, SubmissionTransition.APPROVE, comment
        )

        completed = self._refresh_request(submission)
        context = {
            "office_name": office.name,
            "comment": comment,
            "submission_id": submission.id,
            "total_offices": self.registry.total,
        }
        self.dispatcher.dispatch(NotificationEventType.STEP_APPROVED, submission.student_id, context)
        if completed:
            self.dispatcher.dispatch(NotificationEventType.CLEARANCE_COMPLETED, submission.student_id, context)

        return WorkflowResult.ok(
            f"Submission approved by {office.name}",
            {
                "submission_id": submission.id,
                "status": SubmissionStatus.APPROVED.value,
                "clearance_completed": completed,
            },
        )

    @workflow_operation
    def reject_submission(
        self,
        submission_id: str,
        officer: OfficerProfile,
        reason: Optional[str],
    ) -> WorkflowResult:
        """Reject a pending submission. The student may resubmit afterwards."""
        submission, office = self._action_submission(
            submission_id, officer, SubmissionTransition.REJECT, reason
        )

        self.dispatcher.dispatch(
            NotificationEventType.STEP_REJECTED,
            submission.student_id,
            {"office_name": office.name, "comment": reason.strip(), "submission_id": submission.id},
        )
        return WorkflowResult.ok(
            f"Submission rejected by {office.name}",
            {"submission_id": submission.id, "status": SubmissionStatus.REJECTED.value},
        )

    @workflow_operation
    def get_office_pending_submissions(
        self,
        office_id: str,
        officer: Optional[OfficerProfile] = None,
        department_filter: Optional[str] = None,
    ) -> WorkflowResult:
        """Pending submissions of an office, oldest first."""
        office = self._office_for_listing(office_id, officer)
        records = self.store.list_submissions(
            office_id=office.id,
            status=SubmissionStatus.PENDING,
            department_id=department_filter,
        )
        if officer is not None and not self.policy.is_oversight(officer):
            records = [r for r in records if self.policy.can_act(officer, r)]
        return WorkflowResult.ok(
            f"{len(records)} pending submissions for {office.name}",
            [r.to_dict() for r in records],
        )

    @workflow_operation
    def get_office_all_submissions(
        self,
        office_id: str,
        officer: Optional[OfficerProfile] = None,
        department_filter: Optional[str] = None,
    ) -> WorkflowResult:
        """Full submission history of an office, newest first."""
        office = self._office_for_listing(office_id, officer)
        records = self.store.list_submissions(
            office_id=office.id,
            department_id=department_filter,
            newest_first=True,
        )
        if officer is not None:
            records = self.policy.filter_visible(officer, records)
        return WorkflowResult.ok(
            f"{len(records)} submissions for {office.name}",
            [r.to_dict() for r in records],
        )

    @workflow_operation
    def get_submission(
        self,
        submission_id: str,
        officer: Optional[OfficerProfile] = None,
    ) -> WorkflowResult:
        submission = self._require_submission(submission_id)
        if officer is not None and not self.policy.can_view(officer, submission):
            raise Forbidden("You cannot view submissions of this office")

        data = submission.to_dict()
        office = self.registry.get(submission.office_id)
        data["office_name"] = office.name if office else submission.office_id
        if officer is not None:
            data["can_act"] = (
                submission.status == SubmissionStatus.PENDING
                and self.policy.can_act(officer, submission)
            )
        return WorkflowResult.ok("Submission retrieved", data)

    @workflow_operation
    def get_office_statistics(
        self,
        office_id: str,
        department_filter: Optional[str] = None,
    ) -> WorkflowResult:
        """Submission counts for an office. Storage errors degrade to zeros."""
        office = self.registry.require(office_id)
        try:
            counts = self.store.count_by_status(office.id, department_filter)
        except StorageFailure:
            logger.exception(f"Failed to compute statistics for {office.id}")
            counts = {s: 0 for s in SubmissionStatus}

        stats = {
            "total": sum(counts.values()),
            "pending": counts.get(SubmissionStatus.PENDING, 0),
            "approved": counts.get(SubmissionStatus.APPROVED, 0),
            "rejected": counts.get(SubmissionStatus.REJECTED, 0),
        }
        return WorkflowResult.ok(f"Statistics for {office.name}", stats)

    # ------------------------------------------------------------------
    # Oversight operations (callers enforce oversight rights)
    # ------------------------------------------------------------------

    @workflow_operation
    def get_global_submissions(self) -> WorkflowResult:
        records = self.store.list_submissions(newest_first=True)
        return WorkflowResult.ok(f"{len(records)} submissions", [r.to_dict() for r in records])

    @workflow_operation
    def get_global_requests(self) -> WorkflowResult:
        """Every active clearance request with its progress."""
        requests = []
        for request in self.store.list_requests():
            latest = self.store.latest_submissions(request.student_id)
            requests.append({
                **request.to_dict(),
                "approved_offices": progress.approved_count(self.registry, latest),
                "total_offices": self.registry.total,
                "progress_percentage": progress.progress_percentage(self.registry, latest),
            })
        return WorkflowResult.ok(f"{len(requests)} clearance requests", requests)

    @workflow_operation
    def archive_student_clearance(self, student_id: str, actor: OfficerProfile) -> WorkflowResult:
        """Soft-delete a student's active request and its submissions."""
        if not self.policy.is_admin(actor):
            raise Forbidden("Only administrators can archive a clearance")

        request = self.store.get_active_request(student_id)
        if request is None:
            raise NotFound(f"No active clearance for student {student_id}")

        archived = self.store.soft_delete_request(request.id)
        logger.info(f"Admin {actor.id} archived clearance {request.id} of student {student_id}")
        return WorkflowResult.ok(
            "Clearance archived",
            {"request_id": request.id, "archived_records": archived},
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_submission(self, submission_id: str) -> SubmissionRecord:
        submission = self.store.get_submission(submission_id) if submission_id else None
        if submission is None:
            raise NotFound(f"Submission {submission_id} not found")
        return submission

    def _office_for_listing(self, office_id: str, officer: Optional[OfficerProfile]) -> ClearanceOffice:
        office = self.registry.require(office_id)
        if officer is not None and not self.policy.can_view_office(officer, office.id):
            raise Forbidden(f"You are not assigned to {office.name}")
        return office

    def _check_gating(self, latest: progress.LatestSubmissions, office: ClearanceOffice) -> None:
        blockers = progress.blocking_offices(self.registry, latest, office.step_number)
        if blockers:
            names = ", ".join(o.name for o in blockers)
            raise OutOfSequence(f"{office.name} is not open yet. Complete first: {names}")

    def _action_submission(
        self,
        submission_id: str,
        officer: OfficerProfile,
        transition: SubmissionTransition,
        comment: Optional[str],
    ):
        if officer is None:
            raise Forbidden("An officer is required to action submissions")

        submission = self._require_submission(submission_id)
        self.policy.check_can_act(officer, submission)

        machine = SubmissionStateMachine(submission.id, submission.status)
        if not machine.can_perform(transition):
            raise TransitionError(
                f"Submission has already been {submission.status.value}",
                submission.status,
                transition,
            )

        office = self.registry.require(submission.office_id)
        self._check_gating(self.store.latest_submissions(submission.student_id), office)

        new_state = machine.transition(transition, comment=comment)
        actioned = self.store.transition_submission(
            submission.id,
            expected_status=SubmissionStatus.PENDING,
            new_status=new_state,
            officer_id=officer.id,
            comment=comment.strip() if comment else None,
            actioned_at=datetime.utcnow(),
        )
        if not actioned:
            raise AlreadyActioned("Submission has already been actioned by another officer")

        logger.info(f"Officer {officer.id} {new_state.value} submission {submission.id} at {office.id}")
        return submission, office

    def _refresh_request(self, submission: SubmissionRecord) -> bool:
        """
        Recompute the request after an approval from fresh latest statuses.

        Returns:
            True if this call moved the request to COMPLETED
        """
        latest = self.store.latest_submissions(submission.student_id)
        if progress.all_approved(self.registry, latest):
            completed = self.store.complete_request(submission.request_id, datetime.utcnow())
            if completed:
                logger.info(f"Clearance completed for student {submission.student_id}")
            return completed

        self.store.update_request_step(
            submission.request_id, progress.current_step_number(self.registry, latest)
        )
        return False

    def _notify_submission(
        self,
        office: ClearanceOffice,
        submission: SubmissionRecord,
        resubmission: bool,
    ) -> None:
        context = {
            "student_name": submission.student_name,
            "student_matric": submission.student_matric,
            "office_name": office.name,
            "document_count": len(submission.documents),
            "attempt": submission.attempt,
            "submission_id": submission.id,
        }
        event = (
            NotificationEventType.SUBMISSION_RESUBMITTED if resubmission
            else NotificationEventType.SUBMISSION_RECEIVED
        )

        if isinstance(submission.assignment, RoutedTo):
            self.dispatcher.dispatch(event, submission.assignment.officer_id, context)
        else:
            logger.info(f"Submission {submission.id} queued for any {office.id} officer ({event.value})")

        self.dispatcher.dispatch(NotificationEventType.DOCUMENTS_UPLOADED, submission.student_id, context)


def validate_student(student: StudentProfile) -> None:
    if student is None or not (student.id and student.name and student.matric_number):
        raise ValidationError("Student profile is incomplete")


def _validate_documents(documents: Sequence[DocumentInput]) -> List[DocumentRef]:
    """Check document references and normalize them to ``DocumentRef``."""
    if not documents:
        raise ValidationError("At least one document is required")

    refs = []
    for index, document in enumerate(documents, start=1):
        if isinstance(document, DocumentRef):
            ref = document
        elif isinstance(document, Mapping):
            ref = DocumentRef(
                file_name=document.get("file_name") or "",
                file_url=document.get("file_url") or "",
                file_type=document.get("file_type") or "",
            )
        else:
            raise ValidationError(f"Document {index} is not a valid document reference")

        for field_name in ("file_name", "file_url", "file_type"):
            value = getattr(ref, field_name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"Document {index} is missing {field_name}")

        if not _is_valid_document_url(ref.file_url):
            raise ValidationError(f"Document {index} has an invalid file_url")

        refs.append(DocumentRef(ref.file_name.strip(), ref.file_url.strip(), ref.file_type.strip()))
    return refs


def _is_valid_document_url(url: str) -> bool:
    url = url.strip()
    if url.startswith("/"):
        return not url.startswith("//")
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
