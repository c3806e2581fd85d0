"""Integration tests for the complete clearance workflow.

Tests end-to-end flows against an in-memory database:
1. Sequential gating across offices
2. Rejection and resubmission
3. Officer isolation, department scope and routing
4. Completion and final forms
5. Concurrent submission and approval races
"""

import dataclasses
import uuid

import pytest
from sqlalchemy.exc import OperationalError

from clearance.core.errors import ErrorKind, StorageFailure
from clearance.core.offices import ClearanceOffice, OfficeRegistry, OfficeScope
from clearance.core.workflow.engine import ClearanceWorkflowEngine
from clearance.core.workflow.states import RequestStatus, SubmissionStatus
from clearance.db.models import ClearanceSubmission
from clearance.db.models.notification import NotificationEventType
from clearance.services.notifications import NotificationDispatcher
from tests.factories import (
    RecordingSink,
    admin,
    documents,
    faculty_officer,
    hod_officer,
    librarian,
    make_officer,
    make_student,
    overseer,
    submit_and_approve,
)


ALL_OFFICES = ["department_hod", "faculty_officer", "university_librarian"]


def submit(engine, student, office_id="department_hod", **kwargs):
    result = engine.submit_to_office(student, office_id, documents(), **kwargs)
    assert result.success, result.message
    return result.data["submission_id"]


class TestInitiation:
    """Test explicit clearance initiation."""

    def test_initiate_once(self, engine, sink):
        student = make_student()

        result = engine.initiate_clearance(student)
        assert result.success
        assert result.data["status"] == "pending"
        assert result.data["current_step_number"] == 1
        assert sink.events_for(student.id) == [NotificationEventType.CLEARANCE_INITIATED]

        again = engine.initiate_clearance(student)
        assert not again.success
        assert again.error == ErrorKind.VALIDATION_ERROR

    def test_first_submission_creates_request(self, engine, store):
        student = make_student()
        submit(engine, student)

        request = store.get_active_request(student.id)
        assert request is not None
        assert request.status == RequestStatus.IN_PROGRESS

    def test_incomplete_profile(self, engine):
        student = make_student()
        student = dataclasses.replace(student, matric_number="")

        result = engine.submit_to_office(student, "department_hod", documents())
        assert result.error == ErrorKind.VALIDATION_ERROR
        assert "incomplete" in result.message


class TestSubmission:
    """Test document submission rules."""

    def test_submit_by_alias(self, engine, sink):
        student = make_student()

        result = engine.submit_to_office(student, "HOD", documents(2))

        assert result.success
        assert result.data["office_id"] == "department_hod"
        assert result.data["attempt"] == 1
        assert sink.events_for(student.id) == [NotificationEventType.DOCUMENTS_UPLOADED]

    def test_unknown_office(self, engine):
        result = engine.submit_to_office(make_student(), "registry", documents())
        assert result.error == ErrorKind.NOT_FOUND

    @pytest.mark.parametrize("docs, message", [
        ([], "At least one document"),
        (documents(file_name=""), "missing file_name"),
        (documents(file_type="  "), "missing file_type"),
        (documents(file_url="ftp://files.example.edu/a.pdf"), "invalid file_url"),
        (documents(file_url="//evil.example.com/a.pdf"), "invalid file_url"),
        (["not-a-document"], "not a valid document"),
    ])
    def test_invalid_documents(self, engine, docs, message):
        result = engine.submit_to_office(make_student(), "department_hod", docs)

        assert result.error == ErrorKind.VALIDATION_ERROR
        assert message in result.message

    def test_absolute_document_url(self, engine):
        docs = documents(file_url="https://cdn.example.edu/uploads/receipt.pdf")
        assert engine.submit_to_office(make_student(), "department_hod", docs).success

    def test_department_office_needs_department(self, engine):
        student = make_student(department_id=None)

        result = engine.submit_to_office(student, "department_hod", documents())

        assert result.error == ErrorKind.VALIDATION_ERROR
        assert "department is required" in result.message

    def test_duplicate_pending(self, engine):
        student = make_student()
        submit(engine, student)

        result = engine.submit_to_office(student, "department_hod", documents())
        assert result.error == ErrorKind.DUPLICATE_PENDING

    def test_resubmit_after_approval(self, engine):
        student = make_student()
        submit_and_approve(engine, student, ["department_hod"])

        result = engine.submit_to_office(student, "department_hod", documents())
        assert result.error == ErrorKind.ALREADY_ACTIONED


class TestSequentialGating:
    """Test that offices open in step order."""

    def test_later_office_blocked(self, engine):
        student = make_student()

        result = engine.submit_to_office(student, "faculty_officer", documents())

        assert result.error == ErrorKind.OUT_OF_SEQUENCE
        assert "Head of Department" in result.message

    def test_pending_earlier_step_still_blocks(self, engine):
        student = make_student()
        submit(engine, student)

        result = engine.submit_to_office(student, "faculty_officer", documents())
        assert result.error == ErrorKind.OUT_OF_SEQUENCE

    def test_opens_after_approval(self, engine):
        student = make_student()
        submit_and_approve(engine, student, ["department_hod"])

        assert engine.submit_to_office(student, "faculty_officer", documents()).success

    def test_same_step_offices_open_together(self, store):
        registry = OfficeRegistry([
            ClearanceOffice("sports", "Sports Council", 1),
            ClearanceOffice("alumni", "Alumni Association", 1),
            ClearanceOffice("bursary", "Bursary", 2),
        ])
        engine = ClearanceWorkflowEngine(store, registry)
        student = make_student()

        assert engine.submit_to_office(student, "alumni", documents()).success
        assert engine.submit_to_office(student, "sports", documents()).success

        blocked = engine.submit_to_office(student, "bursary", documents())
        assert blocked.error == ErrorKind.OUT_OF_SEQUENCE

    def test_approval_rechecks_gating_against_current_registry(self, engine, store):
        library_first = OfficeRegistry([
            ClearanceOffice("university_librarian", "University Librarian", 1),
            ClearanceOffice("department_hod", "Head of Department", 2, OfficeScope.DEPARTMENT),
        ])
        student = make_student()
        submission_id = submit(ClearanceWorkflowEngine(store, library_first), student, "university_librarian")

        result = engine.approve_submission(submission_id, librarian())

        assert result.error == ErrorKind.OUT_OF_SEQUENCE
        assert store.get_submission(submission_id).status == SubmissionStatus.PENDING


class TestApprovalAndRejection:
    """Test officer actions on submissions."""

    def test_approve(self, engine, store, sink):
        student = make_student()
        submission_id = submit(engine, student)
        officer = hod_officer()

        result = engine.approve_submission(submission_id, officer, "Looks good")

        assert result.success
        assert result.data == {
            "submission_id": submission_id,
            "status": "approved",
            "clearance_completed": False,
        }
        record = store.get_submission(submission_id)
        assert record.status == SubmissionStatus.APPROVED
        assert record.officer_id == officer.id
        assert record.comment == "Looks good"
        assert record.actioned_at is not None
        assert store.get_active_request(student.id).current_step_number == 2
        assert NotificationEventType.STEP_APPROVED in sink.events_for(student.id)

    def test_reject_requires_reason(self, engine, store):
        submission_id = submit(engine, make_student())

        result = engine.reject_submission(submission_id, hod_officer(), "   ")

        assert result.error == ErrorKind.VALIDATION_ERROR
        assert store.get_submission(submission_id).status == SubmissionStatus.PENDING

    def test_reject_then_resubmit(self, engine, store, sink):
        student = make_student()
        first_id = submit(engine, student)

        rejected = engine.reject_submission(first_id, hod_officer(), "Receipt is blurry")
        assert rejected.success
        assert store.get_submission(first_id).comment == "Receipt is blurry"
        assert NotificationEventType.STEP_REJECTED in sink.events_for(student.id)

        blocked = engine.submit_to_office(student, "faculty_officer", documents())
        assert blocked.error == ErrorKind.OUT_OF_SEQUENCE

        second = engine.submit_to_office(student, "department_hod", documents())
        assert second.success
        assert second.data["attempt"] == 2

        latest = store.latest_submissions(student.id)["department_hod"]
        assert latest.id == second.data["submission_id"]
        assert latest.status == SubmissionStatus.PENDING

    def test_action_twice(self, engine):
        submission_id = submit(engine, make_student())
        assert engine.approve_submission(submission_id, hod_officer()).success

        again = engine.approve_submission(submission_id, hod_officer())
        assert again.error == ErrorKind.ALREADY_ACTIONED

        reject = engine.reject_submission(submission_id, hod_officer(), "Changed my mind")
        assert reject.error == ErrorKind.ALREADY_ACTIONED

    def test_unknown_submission(self, engine):
        assert engine.approve_submission(str(uuid.uuid4()), hod_officer()).error == ErrorKind.NOT_FOUND
        assert engine.approve_submission("not-a-uuid", hod_officer()).error == ErrorKind.NOT_FOUND

    def test_missing_officer(self, engine):
        submission_id = submit(engine, make_student())
        assert engine.approve_submission(submission_id, None).error == ErrorKind.FORBIDDEN


class TestOfficeIsolation:
    """Test that officers only act on their own office and scope."""

    def test_other_office_cannot_act(self, engine, store):
        submission_id = submit(engine, make_student())

        result = engine.approve_submission(submission_id, librarian())

        assert result.error == ErrorKind.FORBIDDEN
        assert store.get_submission(submission_id).status == SubmissionStatus.PENDING

    def test_other_office_cannot_learn_actioned_state(self, engine):
        submission_id = submit(engine, make_student())
        assert engine.approve_submission(submission_id, hod_officer()).success

        approve = engine.approve_submission(submission_id, librarian(), "anything")
        reject = engine.reject_submission(submission_id, librarian(), "anything")

        assert approve.error == ErrorKind.FORBIDDEN
        assert reject.error == ErrorKind.FORBIDDEN

    def test_oversight_cannot_act(self, engine):
        submission_id = submit(engine, make_student())

        assert engine.approve_submission(submission_id, overseer()).error == ErrorKind.FORBIDDEN
        assert engine.approve_submission(submission_id, admin()).error == ErrorKind.FORBIDDEN

    def test_other_department_cannot_act(self, engine):
        student = make_student(department_id="eee")
        submission_id = submit(engine, student)

        result = engine.approve_submission(submission_id, hod_officer())

        assert result.error == ErrorKind.FORBIDDEN
        assert "outside your department" in result.message

    def test_faculty_scope(self, engine):
        student = make_student()
        submit_and_approve(engine, student, ["department_hod"])
        submission_id = submit(engine, student, "faculty_officer")

        other = engine.approve_submission(submission_id, faculty_officer(faculty_id="arts"))
        assert other.error == ErrorKind.FORBIDDEN
        assert engine.approve_submission(submission_id, faculty_officer()).success


class TestRouting:
    """Test submissions routed to a specific officer."""

    def test_routed_submission(self, engine, store, sink):
        student = make_student()
        chosen = hod_officer()
        other = hod_officer()

        submission_id = submit(engine, student, officer_id=chosen.id)

        record = store.get_submission(submission_id)
        assert record.assignment.mode == "routed"
        assert record.officer_id == chosen.id
        assert sink.events_for(chosen.id) == [NotificationEventType.SUBMISSION_RECEIVED]

        pending = engine.get_office_pending_submissions("department_hod", other)
        assert pending.data == []

        assert engine.approve_submission(submission_id, other).error == ErrorKind.FORBIDDEN
        assert engine.approve_submission(submission_id, chosen).success

    def test_pooled_submission_visible_to_every_officer(self, engine):
        submit(engine, make_student())

        for officer in (hod_officer(), hod_officer()):
            pending = engine.get_office_pending_submissions("department_hod", officer)
            assert len(pending.data) == 1

    def test_resubmission_notifies_routed_officer(self, engine, sink):
        student = make_student()
        chosen = hod_officer()
        first_id = submit(engine, student, officer_id=chosen.id)
        engine.reject_submission(first_id, chosen, "Wrong form")

        submit(engine, student, officer_id=chosen.id)

        assert sink.events_for(chosen.id) == [
            NotificationEventType.SUBMISSION_RECEIVED,
            NotificationEventType.SUBMISSION_RESUBMITTED,
        ]


class TestCompletion:
    """Test request completion and final forms."""

    def test_all_offices_approved(self, engine, store, sink):
        student = make_student()
        submit_and_approve(engine, student, ALL_OFFICES[:-1])
        submission_id = submit(engine, student, "university_librarian")

        result = engine.approve_submission(submission_id, librarian())

        assert result.data["clearance_completed"] is True
        request = store.get_active_request(student.id)
        assert request.status == RequestStatus.COMPLETED
        assert request.completed_at is not None
        assert sink.events_for(student.id)[-1] == NotificationEventType.CLEARANCE_COMPLETED

        status = engine.get_student_status(student.id).data
        assert status["is_completed"] is True
        assert status["progress_percentage"] == 100
        assert status["approved_offices"] == 3
        assert engine.can_access_final_forms(student.id).data is True

    def test_completion_survives_registry_change(self, engine, store):
        student = make_student()
        submit_and_approve(engine, student, ALL_OFFICES)
        with_bursary = OfficeRegistry(list(engine.registry.list_offices()) + [
            ClearanceOffice("bursary", "Bursary", 4),
        ])
        extended = ClearanceWorkflowEngine(store, with_bursary)

        assert extended.can_access_final_forms(student.id).data is True
        submission_id = submit(extended, student, "bursary")
        assert extended.can_access_final_forms(student.id).data is True

        assert extended.approve_submission(submission_id, make_officer("bursary")).success
        assert extended.get_student_status(student.id).data["approved_offices"] == 4
        assert store.get_active_request(student.id).status == RequestStatus.COMPLETED
        assert extended.can_access_final_forms(student.id).data is True

    def test_incomplete_clearance(self, engine):
        student = make_student()
        submit_and_approve(engine, student, ALL_OFFICES[:1])

        status = engine.get_student_status(student.id).data
        assert status["is_completed"] is False
        assert status["progress_percentage"] == 33
        assert status["current_step_number"] == 2
        assert [o["status"] for o in status["offices"]] == ["approved", "not_submitted", "not_submitted"]
        assert engine.can_access_final_forms(student.id).data is False

    def test_status_without_submissions(self, engine):
        status = engine.get_student_status("student-unknown")
        assert status.success
        assert status.data["request"] is None
        assert status.data["progress_percentage"] == 0

    def test_status_requires_student_id(self, engine):
        assert engine.get_student_status("").error == ErrorKind.VALIDATION_ERROR


class TestOfficeQueries:
    """Test officer listings and statistics."""

    def test_pending_queue_is_fifo(self, engine):
        first, second = make_student(), make_student()
        first_id = submit(engine, first)
        second_id = submit(engine, second)

        pending = engine.get_office_pending_submissions("department_hod", hod_officer())

        assert [s["id"] for s in pending.data] == [first_id, second_id]

    def test_listing_other_office_forbidden(self, engine):
        result = engine.get_office_pending_submissions("department_hod", librarian())
        assert result.error == ErrorKind.FORBIDDEN

    def test_oversight_sees_every_office(self, engine):
        submit(engine, make_student(department_id="eee"))

        assert len(engine.get_office_all_submissions("department_hod", overseer()).data) == 1
        assert engine.get_office_all_submissions("department_hod", hod_officer()).data == []

    def test_department_filter(self, engine):
        submit(engine, make_student())
        submit(engine, make_student(department_id="eee"))

        result = engine.get_office_pending_submissions("department_hod", overseer(), "eee")
        assert [s["student_department_id"] for s in result.data] == ["eee"]

    def test_get_submission(self, engine):
        submission_id = submit(engine, make_student())

        owner = engine.get_submission(submission_id, hod_officer())
        assert owner.data["office_name"] == "Head of Department"
        assert owner.data["can_act"] is True

        audit = engine.get_submission(submission_id, overseer())
        assert audit.data["can_act"] is False

        assert engine.get_submission(submission_id, librarian()).error == ErrorKind.FORBIDDEN

    def test_statistics(self, engine):
        approved = make_student()
        submit_and_approve(engine, approved, ["department_hod"])
        rejected_id = submit(engine, make_student())
        engine.reject_submission(rejected_id, hod_officer(), "Missing stamp")
        submit(engine, make_student())

        stats = engine.get_office_statistics("department_hod").data
        assert stats == {"total": 3, "pending": 1, "approved": 1, "rejected": 1}

    def test_statistics_degrade_on_storage_failure(self, engine, monkeypatch):
        def broken(*args, **kwargs):
            raise StorageFailure("database unavailable")

        monkeypatch.setattr(engine.store, "count_by_status", broken)

        result = engine.get_office_statistics("department_hod")
        assert result.success
        assert result.data == {"total": 0, "pending": 0, "approved": 0, "rejected": 0}

    def test_global_requests(self, engine):
        student = make_student()
        submit_and_approve(engine, student, ["department_hod"])

        requests = engine.get_global_requests().data
        assert len(requests) == 1
        assert requests[0]["student_id"] == student.id
        assert requests[0]["approved_offices"] == 1
        assert requests[0]["total_offices"] == 3
        assert requests[0]["progress_percentage"] == 33

        assert len(engine.get_global_submissions().data) == 1


class TestArchive:
    """Test soft-deleting a student's clearance."""

    def test_admin_archives(self, engine, store):
        student = make_student()
        submit_and_approve(engine, student, ["department_hod"])

        result = engine.archive_student_clearance(student.id, admin())

        assert result.success
        assert result.data["archived_records"] == 2
        assert store.get_active_request(student.id) is None
        assert store.latest_submissions(student.id) == {}

        restarted = engine.submit_to_office(student, "department_hod", documents())
        assert restarted.success
        assert restarted.data["attempt"] == 2

    def test_non_admin_cannot_archive(self, engine):
        student = make_student()
        submit(engine, student)

        assert engine.archive_student_clearance(student.id, overseer()).error == ErrorKind.FORBIDDEN

    def test_nothing_to_archive(self, engine):
        assert engine.archive_student_clearance("student-none", admin()).error == ErrorKind.NOT_FOUND


class TestConcurrency:
    """Test races resolved by the store's conditional writes."""

    def test_stale_read_loses_approval_race(self, engine, monkeypatch):
        submission_id = submit(engine, make_student())
        assert engine.approve_submission(submission_id, hod_officer()).success

        real_get = engine.store.get_submission

        def stale_get(sid):
            return dataclasses.replace(real_get(sid), status=SubmissionStatus.PENDING)

        monkeypatch.setattr(engine.store, "get_submission", stale_get)

        result = engine.reject_submission(submission_id, hod_officer(), "Too late")
        assert result.error == ErrorKind.ALREADY_ACTIONED
        assert "another officer" in result.message

    def test_concurrent_submission_loses(self, engine, store, db_session, monkeypatch):
        student = make_student()
        engine.initiate_clearance(student)
        real_add = db_session.add
        raced = []

        def racing_add(obj, *args, **kwargs):
            if isinstance(obj, ClearanceSubmission) and not raced:
                raced.append(obj)
                real_add(ClearanceSubmission(
                    id=uuid.uuid4(),
                    request_id=obj.request_id,
                    student_id=obj.student_id,
                    student_name=obj.student_name,
                    student_matric=obj.student_matric,
                    office_id=obj.office_id,
                    step_number=obj.step_number,
                    attempt=obj.attempt,
                    assignment_mode="pooled",
                    documents=[],
                    status="pending",
                ))
                db_session.flush()
            real_add(obj, *args, **kwargs)

        monkeypatch.setattr(db_session, "add", racing_add)

        result = engine.submit_to_office(student, "department_hod", documents())

        assert result.error == ErrorKind.DUPLICATE_PENDING
        assert store.latest_submissions(student.id) == {}

    def test_concurrent_request_creation(self, engine, store, monkeypatch):
        student = make_student()
        engine.initiate_clearance(student)
        real_get = store.get_active_request
        calls = []

        def first_miss(student_id):
            calls.append(student_id)
            return None if len(calls) == 1 else real_get(student_id)

        monkeypatch.setattr(store, "get_active_request", first_miss)

        request = store.get_or_create_request(student.id, 1)
        assert request.student_id == student.id
        assert len(calls) == 2


class TestFailureHandling:
    """Test storage failures and notification failures."""

    def test_storage_failure(self, engine, db_session, monkeypatch):
        def down(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is down"))

        monkeypatch.setattr(db_session, "query", down)

        result = engine.get_student_status("student-1")
        assert result.error == ErrorKind.STORAGE_FAILURE

    def test_notification_failure_keeps_state(self, store, registry, policy):
        class BrokenSink:
            def notify(self, *args, **kwargs):
                raise RuntimeError("smtp down")

        recording = RecordingSink()
        engine = ClearanceWorkflowEngine(
            store, registry, policy, NotificationDispatcher([BrokenSink(), recording])
        )
        student = make_student()

        submission_id = submit(engine, student)

        assert store.get_submission(submission_id).status == SubmissionStatus.PENDING
        assert recording.events_for(student.id) == [NotificationEventType.DOCUMENTS_UPLOADED]

    def test_unassigned_officer_queue(self, engine):
        result = engine.get_office_pending_submissions("department_hod", make_officer(None))
        assert result.error == ErrorKind.FORBIDDEN
