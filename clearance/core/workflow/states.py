"""Clearance submission states and transitions.

State Machine Diagram (per submission record):

    ┌──────────┐
    │ PENDING  │ ← Initial state (student submitted documents)
    └────┬─────┘
         │
         ├──────────────────────┐
         │ approve              │ reject (reason required)
    ┌────▼─────┐          ┌─────▼────┐
    │ APPROVED │          │ REJECTED │
    └──────────┘          └─────┬────┘
                                │ student resubmits
                          ┌─────▼────┐
                          │ PENDING  │ (new record, next attempt)
                          └──────────┘

Both APPROVED and REJECTED are final for the record itself. A rejection
only unblocks a brand-new submission to the same office; the rejected
record stays in the office history.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, NamedTuple, Optional, Set, Union


class SubmissionStatus(str, Enum):
    """Status of a single clearance submission."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestStatus(str, Enum):
    """Status of a student's overall clearance request."""

    PENDING = "pending"           # Initiated, nothing submitted yet
    IN_PROGRESS = "in_progress"   # At least one submission made
    COMPLETED = "completed"       # Every office approved


class SubmissionTransition(str, Enum):
    """Officer actions on a submission."""

    APPROVE = "approve"   # PENDING → APPROVED
    REJECT = "reject"     # PENDING → REJECTED


class TransitionRule(NamedTuple):
    """Defines a valid state transition."""
    from_state: SubmissionStatus
    to_state: SubmissionStatus
    transition: SubmissionTransition
    requires_comment: bool = False


TRANSITION_RULES: list[TransitionRule] = [
    TransitionRule(SubmissionStatus.PENDING, SubmissionStatus.APPROVED, SubmissionTransition.APPROVE),
    TransitionRule(SubmissionStatus.PENDING, SubmissionStatus.REJECTED, SubmissionTransition.REJECT,
                   requires_comment=True),
]

VALID_TRANSITIONS: Dict[SubmissionStatus, Set[SubmissionTransition]] = {}
TRANSITION_TARGETS: Dict[tuple[SubmissionStatus, SubmissionTransition], TransitionRule] = {}

for rule in TRANSITION_RULES:
    VALID_TRANSITIONS.setdefault(rule.from_state, set()).add(rule.transition)
    TRANSITION_TARGETS[(rule.from_state, rule.transition)] = rule


TERMINAL_STATES: Set[SubmissionStatus] = {
    SubmissionStatus.APPROVED,
    SubmissionStatus.REJECTED,
}

# States whose latest occurrence blocks a new submission to the same office
BLOCKING_STATES: Set[SubmissionStatus] = {
    SubmissionStatus.PENDING,
    SubmissionStatus.APPROVED,
}


def can_transition(from_state: SubmissionStatus, transition: SubmissionTransition) -> bool:
    """Check if a transition is valid from the given state."""
    return transition in VALID_TRANSITIONS.get(from_state, set())


def get_transition_rule(
    from_state: SubmissionStatus, transition: SubmissionTransition
) -> Optional[TransitionRule]:
    """Get the transition rule for a state/action combination."""
    return TRANSITION_TARGETS.get((from_state, transition))


def get_target_state(
    from_state: SubmissionStatus, transition: SubmissionTransition
) -> Optional[SubmissionStatus]:
    """Get the target state for a transition."""
    rule = get_transition_rule(from_state, transition)
    return rule.to_state if rule else None


# Assignment of a submission to officers, resolved at submission time.

@dataclass(frozen=True)
class Pooled:
    """Any officer of the office may act."""

    mode = "pooled"


@dataclass(frozen=True)
class RoutedTo:
    """Only the named officer may act."""

    officer_id: str
    mode = "routed"


AssignmentMode = Union[Pooled, RoutedTo]


def resolve_assignment(officer_id: Optional[str]) -> AssignmentMode:
    """Pick the assignment for a new submission."""
    if officer_id and officer_id.strip():
        return RoutedTo(officer_id.strip())
    return Pooled()
