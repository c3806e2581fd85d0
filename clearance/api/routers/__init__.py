"""API routers for the clearance portal."""

from . import health
from . import student
from . import officer
from . import oversight
from . import notifications

__all__ = [
    "health",
    "student",
    "officer",
    "oversight",
    "notifications",
]
