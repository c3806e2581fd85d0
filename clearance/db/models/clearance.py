"""Clearance workflow database models.

One canonical schema for both per-office submissions and the per-student
umbrella request. Rows are never hard-deleted; ``is_deleted`` hides them
from active-state queries while keeping them for audit.
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, DateTime, JSON, ForeignKey, Text, Integer, Boolean,
    Index, UniqueConstraint, Uuid, text,
)
from sqlalchemy.orm import relationship

from clearance.db.base import Base


class ClearanceRequest(Base):
    """
    A student's overall clearance progress.

    At most one non-deleted request exists per student.
    """
    __tablename__ = "clearance_requests"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(String(64), nullable=False, index=True)

    # Workflow state
    status = Column(String(20), nullable=False, default="pending", index=True)
    current_step_number = Column(Integer, nullable=False, default=1)
    completed_at = Column(DateTime, nullable=True)

    # Downstream artifacts
    nysc_accessed = Column(Boolean, nullable=False, default=False)

    is_deleted = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    submissions = relationship(
        "ClearanceSubmission",
        back_populates="request",
        order_by="ClearanceSubmission.created_at",
    )

    __table_args__ = (
        Index(
            "uq_clearance_requests_active_student",
            "student_id",
            unique=True,
            sqlite_where=text("is_deleted = 0"),
            postgresql_where=text("NOT is_deleted"),
        ),
    )

    def __repr__(self) -> str:
        return f"<ClearanceRequest {self.student_id} [{self.status}]>"


class ClearanceSubmission(Base):
    """
    One student's document package for one office.

    Resubmitting after a rejection creates a new row with the next
    ``attempt`` number; the unique key makes concurrent duplicates collide.
    """
    __tablename__ = "clearance_submissions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    request_id = Column(Uuid(as_uuid=True), ForeignKey("clearance_requests.id", ondelete="CASCADE"), nullable=False, index=True)

    # Student snapshot at submission time
    student_id = Column(String(64), nullable=False, index=True)
    student_name = Column(String(255), nullable=False)
    student_matric = Column(String(50), nullable=False)
    student_department_id = Column(String(64), nullable=True, index=True)
    student_faculty_id = Column(String(64), nullable=True, index=True)

    # Office and ordering
    office_id = Column(String(64), nullable=False, index=True)
    step_number = Column(Integer, nullable=False)
    attempt = Column(Integer, nullable=False, default=1)

    # Routing: "pooled" or "routed"; officer_id is the routed or actioning officer
    assignment_mode = Column(String(20), nullable=False, default="pooled")
    officer_id = Column(String(64), nullable=True, index=True)

    # Ordered list of {file_name, file_url, file_type}
    documents = Column(JSON, nullable=False, default=list)

    # Workflow state
    status = Column(String(20), nullable=False, default="pending", index=True)
    comment = Column(Text, nullable=True)

    is_deleted = Column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    actioned_at = Column(DateTime, nullable=True)

    # Relationships
    request = relationship("ClearanceRequest", back_populates="submissions")

    __table_args__ = (
        UniqueConstraint("student_id", "office_id", "attempt", name="uq_clearance_submissions_attempt"),
    )

    def __repr__(self) -> str:
        return f"<ClearanceSubmission {self.student_id}@{self.office_id}#{self.attempt} [{self.status}]>"
