"""Submission state machine.

Validates officer actions against the transition table. Persistence of the
resulting state is the store's job and is guarded there by a conditional
update, so this class only decides whether a move is legal.
"""

from typing import Optional

from clearance.core.errors import AlreadyActioned, ValidationError
from .states import (
    SubmissionStatus,
    SubmissionTransition,
    TERMINAL_STATES,
    can_transition,
    get_transition_rule,
)


class TransitionError(AlreadyActioned):
    """Raised when a transition is invalid from the current state."""

    def __init__(self, message: str, from_state: SubmissionStatus, transition: SubmissionTransition):
        super().__init__(message)
        self.from_state = from_state
        self.transition = transition


class SubmissionStateMachine:
    """State machine for a single clearance submission."""

    def __init__(self, submission_id: str, current_state: SubmissionStatus):
        self.submission_id = submission_id
        self._state = current_state

    @property
    def state(self) -> SubmissionStatus:
        """Current state of the submission."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def can_perform(self, transition: SubmissionTransition) -> bool:
        """Check if a transition can be performed from current state."""
        return can_transition(self._state, transition)

    def get_available_transitions(self) -> list[SubmissionTransition]:
        return [t for t in SubmissionTransition if self.can_perform(t)]

    def transition(
        self,
        transition: SubmissionTransition,
        *,
        comment: Optional[str] = None,
    ) -> SubmissionStatus:
        """
        Perform a state transition.

        Args:
            transition: The transition to perform
            comment: Officer comment (required for rejections)

        Returns:
            The new state after transition

        Raises:
            TransitionError: If the submission was already actioned
            ValidationError: If a required comment is missing
        """
        rule = get_transition_rule(self._state, transition)
        if rule is None:
            raise TransitionError(
                f"Submission has already been {self._state.value}",
                self._state,
                transition,
            )

        if rule.requires_comment and not (comment and comment.strip()):
            raise ValidationError(f"A reason is required to {transition.value} a submission")

        self._state = rule.to_state
        return self._state
