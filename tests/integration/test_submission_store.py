"""Tests for the SQLAlchemy submission store."""

from datetime import datetime

import pytest

from clearance.core.errors import ValidationError
from clearance.core.workflow.states import Pooled, RequestStatus, RoutedTo, SubmissionStatus
from clearance.db.store import DocumentRef, NewSubmission


def new_submission(request, student_id="student-1", office_id="department_hod", **kwargs):
    values = dict(
        request_id=request.id,
        student_id=student_id,
        student_name="Ada Obi",
        student_matric="CSC/2020/001",
        office_id=office_id,
        step_number=1,
        documents=[DocumentRef("receipt.pdf", "/uploads/receipt.pdf", "application/pdf")],
        student_department_id="csc",
        student_faculty_id="sci",
    )
    values.update(kwargs)
    return NewSubmission(**values)


def approve(store, submission_id, expected=SubmissionStatus.PENDING):
    return store.transition_submission(
        submission_id,
        expected_status=expected,
        new_status=SubmissionStatus.APPROVED,
        officer_id="officer-1",
        comment=None,
        actioned_at=datetime.utcnow(),
    )


class TestRequests:
    """Test clearance request persistence."""

    def test_one_active_request_per_student(self, store):
        request = store.create_request("student-1", 1)

        assert request.status == RequestStatus.PENDING
        with pytest.raises(ValidationError):
            store.create_request("student-1", 1)
        assert store.get_or_create_request("student-1", 1).id == request.id

    def test_status_updates(self, store):
        request = store.create_request("student-1", 1)

        assert store.mark_request_in_progress(request.id)
        assert not store.mark_request_in_progress(request.id)
        assert store.update_request_step(request.id, 2)
        assert store.get_active_request("student-1").current_step_number == 2

    def test_completion_is_monotonic(self, store):
        request = store.create_request("student-1", 1)

        assert store.complete_request(request.id, datetime.utcnow())
        assert not store.complete_request(request.id, datetime.utcnow())
        assert not store.update_request_step(request.id, 1)

        stored = store.get_active_request("student-1")
        assert stored.status == RequestStatus.COMPLETED
        assert stored.current_step_number == 1

    def test_nysc_accessed(self, store):
        request = store.create_request("student-1", 1)
        store.mark_nysc_accessed(request.id)
        assert store.get_active_request("student-1").nysc_accessed is True

    def test_invalid_ids(self, store):
        assert store.get_submission("nope") is None
        assert not store.mark_request_in_progress("nope")
        assert store.soft_delete_request("nope") == 0

    def test_list_requests(self, store):
        store.create_request("student-1", 1)
        store.create_request("student-2", 1)
        assert {r.student_id for r in store.list_requests()} == {"student-1", "student-2"}


class TestSubmissions:
    """Test submission persistence."""

    def test_create_and_read(self, store):
        request = store.create_request("student-1", 1)

        created = store.create_submission(new_submission(request))
        fetched = store.get_submission(created.id)

        assert fetched == created
        assert fetched.attempt == 1
        assert fetched.status == SubmissionStatus.PENDING
        assert fetched.assignment == Pooled()
        assert fetched.documents == (DocumentRef("receipt.pdf", "/uploads/receipt.pdf", "application/pdf"),)
        assert fetched.student_department_id == "csc"

    def test_routed_assignment(self, store):
        request = store.create_request("student-1", 1)

        created = store.create_submission(new_submission(request, assignment=RoutedTo("officer-7")))

        assert created.assignment == RoutedTo("officer-7")
        assert created.officer_id == "officer-7"

    def test_attempts_increase(self, store):
        request = store.create_request("student-1", 1)
        first = store.create_submission(new_submission(request))
        store.transition_submission(
            first.id,
            expected_status=SubmissionStatus.PENDING,
            new_status=SubmissionStatus.REJECTED,
            officer_id="officer-1",
            comment="Blurry",
            actioned_at=datetime.utcnow(),
        )

        second = store.create_submission(new_submission(request))

        assert second.attempt == 2
        latest = store.latest_submissions("student-1")
        assert latest["department_hod"].id == second.id

    def test_conditional_transition(self, store):
        request = store.create_request("student-1", 1)
        submission = store.create_submission(new_submission(request))

        assert approve(store, submission.id)
        assert not approve(store, submission.id)

        stored = store.get_submission(submission.id)
        assert stored.status == SubmissionStatus.APPROVED
        assert stored.officer_id == "officer-1"

    def test_list_and_count(self, store):
        request_1 = store.create_request("student-1", 1)
        request_2 = store.create_request("student-2", 1)
        first = store.create_submission(new_submission(request_1))
        store.create_submission(new_submission(request_2, student_id="student-2", student_department_id="eee"))
        store.create_submission(new_submission(request_1, office_id="university_librarian", step_number=3))
        approve(store, first.id)

        hod = store.list_submissions(office_id="department_hod")
        assert [s.student_id for s in hod] == ["student-1", "student-2"]

        newest = store.list_submissions(office_id="department_hod", newest_first=True)
        assert [s.student_id for s in newest] == ["student-2", "student-1"]

        pending = store.list_submissions(office_id="department_hod", status=SubmissionStatus.PENDING)
        assert [s.student_id for s in pending] == ["student-2"]

        eee = store.list_submissions(department_id="eee")
        assert [s.student_id for s in eee] == ["student-2"]

        assert store.count_by_status("department_hod") == {
            SubmissionStatus.PENDING: 1,
            SubmissionStatus.APPROVED: 1,
            SubmissionStatus.REJECTED: 0,
        }
        assert store.count_by_status("department_hod", "csc")[SubmissionStatus.PENDING] == 0

    def test_soft_delete_hides_rows(self, store):
        request = store.create_request("student-1", 1)
        submission = store.create_submission(new_submission(request))

        assert store.soft_delete_request(request.id) == 2

        assert store.get_active_request("student-1") is None
        assert store.get_submission(submission.id) is None
        assert store.list_submissions() == []
        assert store.count_by_status("department_hod")[SubmissionStatus.PENDING] == 0

        # A fresh request may be started after archiving
        assert store.create_request("student-1", 1).id != request.id

