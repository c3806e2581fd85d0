"""Officer roles and access policy.

The policy lives in ``clearance.core.access.policy``; it depends on the
identity and store modules, which in turn import the roles defined here.
"""

from .roles import OfficerRole, UserRole, OVERSIGHT_ROLES, ADMIN_ROLES

__all__ = [
    "OfficerRole",
    "UserRole",
    "OVERSIGHT_ROLES",
    "ADMIN_ROLES",
]
