"""Officer roles for the clearance portal.

Roles only matter for oversight visibility. Acting on a submission is
always decided by office assignment and scope, never by role alone.
"""

from enum import Enum
from typing import FrozenSet


class OfficerRole(str, Enum):
    """Roles an officer account can hold."""

    OFFICER = "OFFICER"                   # Regular office officer
    HOD = "HOD"                           # Head of department
    OVERSEER = "OVERSEER"                 # Read-only audit across offices
    STUDENT_AFFAIRS = "STUDENT_AFFAIRS"   # Dean of students, audit view
    ADMIN = "ADMIN"                       # Portal administrator


class UserRole(str, Enum):
    """Roles of an authenticated portal user."""

    STUDENT = "STUDENT"
    OFFICER = "OFFICER"
    ADMIN = "ADMIN"


# Roles that may read submissions and requests of every office
OVERSIGHT_ROLES: FrozenSet[OfficerRole] = frozenset([
    OfficerRole.OVERSEER,
    OfficerRole.ADMIN,
    OfficerRole.STUDENT_AFFAIRS,
])

# Roles that may archive a student's clearance
ADMIN_ROLES: FrozenSet[OfficerRole] = frozenset([
    OfficerRole.ADMIN,
])
