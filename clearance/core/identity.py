"""Already-authenticated identity values passed into workflow operations.

The identity provider resolves these once per request; the engine trusts
them and never re-validates credentials.
"""

from dataclasses import dataclass
from typing import Optional

from clearance.core.access.roles import OfficerRole, UserRole


@dataclass(frozen=True)
class StudentProfile:
    """The student side of a session."""

    id: str
    name: str
    matric_number: str
    department_id: Optional[str] = None
    faculty_id: Optional[str] = None


@dataclass(frozen=True)
class OfficerProfile:
    """The officer side of a session."""

    id: str
    name: str = ""
    role: OfficerRole = OfficerRole.OFFICER
    assigned_office_id: Optional[str] = None
    assigned_department_id: Optional[str] = None
    faculty_id: Optional[str] = None


@dataclass(frozen=True)
class CurrentUser:
    """Result of ``IdentityProvider.get_current_user()``."""

    id: str
    role: UserRole
    student: Optional[StudentProfile] = None
    officer: Optional[OfficerProfile] = None
