"""SQLAlchemy implementation of the submission store.

Every write commits immediately so a state change is visible to other
sessions as soon as the call returns. State changes go through
``Query.update`` with the expected current status in the WHERE clause; the
affected row count tells the caller whether it won.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from sqlalchemy import and_, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clearance.core.errors import DuplicatePending, StorageFailure, ValidationError
from clearance.core.workflow.states import (
    Pooled,
    RequestStatus,
    RoutedTo,
    SubmissionStatus,
)
from clearance.db.models import ClearanceRequest, ClearanceSubmission
from clearance.db.store import (
    DocumentRef,
    NewSubmission,
    RequestRecord,
    SubmissionRecord,
    SubmissionStore,
)

logger = logging.getLogger(__name__)


def _parse_uuid(value: str) -> Optional[uuid.UUID]:
    try:
        return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
    except (ValueError, TypeError):
        return None


class SqlAlchemySubmissionStore(SubmissionStore):
    """Submission store backed by a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _storage(self, operation: str) -> Iterator[None]:
        """Roll back and convert driver errors into ``StorageFailure``."""
        try:
            yield
        except IntegrityError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Storage error during {operation}")
            raise StorageFailure(f"Storage failure during {operation}") from e

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _active_requests(self):
        return self.db.query(ClearanceRequest).filter(ClearanceRequest.is_deleted == False)  # noqa: E712

    def get_active_request(self, student_id: str) -> Optional[RequestRecord]:
        with self._storage("get_active_request"):
            request = self._active_requests().filter(
                ClearanceRequest.student_id == student_id
            ).first()
            return self._request_to_record(request) if request else None

    def create_request(self, student_id: str, current_step_number: int) -> RequestRecord:
        request = ClearanceRequest(
            id=uuid.uuid4(),
            student_id=student_id,
            status=RequestStatus.PENDING.value,
            current_step_number=current_step_number,
        )
        try:
            with self._storage("create_request"):
                self.db.add(request)
                self.db.commit()
        except IntegrityError as e:
            raise ValidationError(f"Clearance already initiated for student {student_id}") from e
        return self._request_to_record(request)

    def mark_request_in_progress(self, request_id: str) -> bool:
        return self._update_request(
            request_id,
            [ClearanceRequest.status == RequestStatus.PENDING.value],
            {"status": RequestStatus.IN_PROGRESS.value},
            "mark_request_in_progress",
        )

    def update_request_step(self, request_id: str, current_step_number: int) -> bool:
        return self._update_request(
            request_id,
            [ClearanceRequest.status != RequestStatus.COMPLETED.value],
            {"current_step_number": current_step_number},
            "update_request_step",
        )

    def complete_request(self, request_id: str, completed_at: datetime) -> bool:
        return self._update_request(
            request_id,
            [ClearanceRequest.status != RequestStatus.COMPLETED.value],
            {"status": RequestStatus.COMPLETED.value, "completed_at": completed_at},
            "complete_request",
        )

    def mark_nysc_accessed(self, request_id: str) -> None:
        self._update_request(request_id, [], {"nysc_accessed": True}, "mark_nysc_accessed")

    def soft_delete_request(self, request_id: str) -> int:
        request_uuid = _parse_uuid(request_id)
        if request_uuid is None:
            return 0
        with self._storage("soft_delete_request"):
            submissions = self.db.query(ClearanceSubmission).filter(
                and_(
                    ClearanceSubmission.request_id == request_uuid,
                    ClearanceSubmission.is_deleted == False,  # noqa: E712
                )
            ).update({"is_deleted": True}, synchronize_session=False)
            requests = self._active_requests().filter(
                ClearanceRequest.id == request_uuid
            ).update(
                {"is_deleted": True, "updated_at": datetime.utcnow()},
                synchronize_session=False,
            )
            self.db.commit()
        return submissions + requests

    def list_requests(self) -> List[RequestRecord]:
        with self._storage("list_requests"):
            requests = self._active_requests().order_by(ClearanceRequest.created_at.desc()).all()
            return [self._request_to_record(r) for r in requests]

    def _update_request(self, request_id: str, conditions: list, values: dict, operation: str) -> bool:
        request_uuid = _parse_uuid(request_id)
        if request_uuid is None:
            return False
        values = {**values, "updated_at": datetime.utcnow()}
        with self._storage(operation):
            updated = self._active_requests().filter(
                and_(ClearanceRequest.id == request_uuid, *conditions)
            ).update(values, synchronize_session=False)
            self.db.commit()
        return updated == 1

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def _active_submissions(self):
        return self.db.query(ClearanceSubmission).filter(ClearanceSubmission.is_deleted == False)  # noqa: E712

    def create_submission(self, new: NewSubmission) -> SubmissionRecord:
        try:
            with self._storage("create_submission"):
                # Attempts keep counting across soft-deleted rows so the unique key holds
                last_attempt = self.db.query(func.max(ClearanceSubmission.attempt)).filter(
                    and_(
                        ClearanceSubmission.student_id == new.student_id,
                        ClearanceSubmission.office_id == new.office_id,
                    )
                ).scalar() or 0

                submission = ClearanceSubmission(
                    id=uuid.uuid4(),
                    request_id=_parse_uuid(new.request_id),
                    student_id=new.student_id,
                    student_name=new.student_name,
                    student_matric=new.student_matric,
                    student_department_id=new.student_department_id,
                    student_faculty_id=new.student_faculty_id,
                    office_id=new.office_id,
                    step_number=new.step_number,
                    attempt=last_attempt + 1,
                    assignment_mode=new.assignment.mode,
                    officer_id=new.officer_id,
                    documents=[d.to_dict() for d in new.documents],
                    status=SubmissionStatus.PENDING.value,
                )
                self.db.add(submission)
                self.db.commit()
        except IntegrityError as e:
            raise DuplicatePending(
                f"A submission to {new.office_id} is already being processed"
            ) from e
        return self._submission_to_record(submission)

    def get_submission(self, submission_id: str) -> Optional[SubmissionRecord]:
        submission_uuid = _parse_uuid(submission_id)
        if submission_uuid is None:
            return None
        with self._storage("get_submission"):
            submission = self._active_submissions().filter(
                ClearanceSubmission.id == submission_uuid
            ).first()
            return self._submission_to_record(submission) if submission else None

    def latest_submissions(self, student_id: str) -> Dict[str, SubmissionRecord]:
        with self._storage("latest_submissions"):
            submissions = self._active_submissions().filter(
                ClearanceSubmission.student_id == student_id
            ).order_by(ClearanceSubmission.attempt.asc()).all()
            # Later attempts overwrite earlier ones
            return {s.office_id: self._submission_to_record(s) for s in submissions}

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
        submission_uuid = _parse_uuid(submission_id)
        if submission_uuid is None:
            return False
        with self._storage("transition_submission"):
            updated = self._active_submissions().filter(
                and_(
                    ClearanceSubmission.id == submission_uuid,
                    ClearanceSubmission.status == expected_status.value,
                )
            ).update(
                {
                    "status": new_status.value,
                    "officer_id": officer_id,
                    "comment": comment,
                    "actioned_at": actioned_at,
                },
                synchronize_session=False,
            )
            self.db.commit()
        return updated == 1

    def list_submissions(
        self,
        *,
        office_id: Optional[str] = None,
        status: Optional[SubmissionStatus] = None,
        department_id: Optional[str] = None,
        newest_first: bool = False,
    ) -> List[SubmissionRecord]:
        with self._storage("list_submissions"):
            query = self._active_submissions()
            if office_id:
                query = query.filter(ClearanceSubmission.office_id == office_id)
            if status:
                query = query.filter(ClearanceSubmission.status == status.value)
            if department_id:
                query = query.filter(ClearanceSubmission.student_department_id == department_id)

            if newest_first:
                query = query.order_by(ClearanceSubmission.created_at.desc(), ClearanceSubmission.attempt.desc())
            else:
                query = query.order_by(ClearanceSubmission.created_at.asc(), ClearanceSubmission.attempt.asc())

            return [self._submission_to_record(s) for s in query.all()]

    def count_by_status(
        self,
        office_id: str,
        department_id: Optional[str] = None,
    ) -> Dict[SubmissionStatus, int]:
        with self._storage("count_by_status"):
            query = self.db.query(
                ClearanceSubmission.status, func.count(ClearanceSubmission.id)
            ).filter(
                and_(
                    ClearanceSubmission.is_deleted == False,  # noqa: E712
                    ClearanceSubmission.office_id == office_id,
                )
            )
            if department_id:
                query = query.filter(ClearanceSubmission.student_department_id == department_id)

            counts = {status: 0 for status in SubmissionStatus}
            for status, count in query.group_by(ClearanceSubmission.status).all():
                counts[SubmissionStatus(status)] = count
            return counts

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def _submission_to_record(self, submission: ClearanceSubmission) -> SubmissionRecord:
        if submission.assignment_mode == RoutedTo.mode and submission.officer_id:
            assignment = RoutedTo(submission.officer_id)
        else:
            assignment = Pooled()

        return SubmissionRecord(
            id=str(submission.id),
            request_id=str(submission.request_id),
            student_id=submission.student_id,
            student_name=submission.student_name,
            student_matric=submission.student_matric,
            student_department_id=submission.student_department_id,
            student_faculty_id=submission.student_faculty_id,
            office_id=submission.office_id,
            step_number=submission.step_number,
            attempt=submission.attempt,
            assignment=assignment,
            officer_id=submission.officer_id,
            documents=tuple(DocumentRef.from_dict(d) for d in (submission.documents or [])),
            status=SubmissionStatus(submission.status),
            comment=submission.comment,
            created_at=submission.created_at,
            actioned_at=submission.actioned_at,
            is_deleted=bool(submission.is_deleted),
        )

    def _request_to_record(self, request: ClearanceRequest) -> RequestRecord:
        return RequestRecord(
            id=str(request.id),
            student_id=request.student_id,
            status=RequestStatus(request.status),
            current_step_number=request.current_step_number,
            completed_at=request.completed_at,
            nysc_accessed=bool(request.nysc_accessed),
            is_deleted=bool(request.is_deleted),
            created_at=request.created_at,
            updated_at=request.updated_at,
        )
