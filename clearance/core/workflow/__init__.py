"""Clearance workflow module.

Implements the per-office submission state machine and the ordered
multi-office approval engine (``clearance.core.workflow.engine``).
"""

from .states import (
    SubmissionStatus,
    RequestStatus,
    SubmissionTransition,
    VALID_TRANSITIONS,
    Pooled,
    RoutedTo,
    AssignmentMode,
)
from .machine import SubmissionStateMachine, TransitionError

__all__ = [
    "SubmissionStatus",
    "RequestStatus",
    "SubmissionTransition",
    "VALID_TRANSITIONS",
    "Pooled",
    "RoutedTo",
    "AssignmentMode",
    "SubmissionStateMachine",
    "TransitionError",
]
