"""Request and identity schemas for the clearance endpoints."""

from typing import List, Optional
from pydantic import BaseModel, Field

from clearance.core.access.roles import OfficerRole, UserRole
from clearance.core.identity import CurrentUser, OfficerProfile, StudentProfile


class DocumentIn(BaseModel):
    """Reference to an already uploaded document."""
    file_name: str = ""
    file_url: str = ""
    file_type: str = ""


class SubmitDocumentsRequest(BaseModel):
    office_id: str = Field(..., min_length=1)
    documents: List[DocumentIn] = Field(default_factory=list)
    officer_id: Optional[str] = None


class ApproveSubmissionRequest(BaseModel):
    comment: Optional[str] = None


class RejectSubmissionRequest(BaseModel):
    reason: Optional[str] = None


# Identity claims forwarded by the gateway in the X-Identity header

class StudentClaims(BaseModel):
    id: str
    name: str
    matric_number: str
    department_id: Optional[str] = None
    faculty_id: Optional[str] = None

    def to_profile(self) -> StudentProfile:
        return StudentProfile(**self.model_dump())


class OfficerClaims(BaseModel):
    id: str
    name: str = ""
    role: OfficerRole = OfficerRole.OFFICER
    assigned_office_id: Optional[str] = None
    assigned_department_id: Optional[str] = None
    faculty_id: Optional[str] = None

    def to_profile(self) -> OfficerProfile:
        return OfficerProfile(**self.model_dump())


class IdentityClaims(BaseModel):
    id: str = Field(..., min_length=1)
    role: UserRole
    student: Optional[StudentClaims] = None
    officer: Optional[OfficerClaims] = None

    def to_current_user(self) -> CurrentUser:
        return CurrentUser(
            id=self.id,
            role=self.role,
            student=self.student.to_profile() if self.student else None,
            officer=self.officer.to_profile() if self.officer else None,
        )
