"""Officer-to-office access rules.

Decides which submissions an officer may act on or view. Acting requires
the officer's assigned office to be the submission's office and the
student to fall inside the officer's department or faculty when the
officer carries one. Oversight only ever widens what an officer can see.
"""

from typing import Iterable, List, Optional

from clearance.core.errors import Forbidden
from clearance.core.identity import OfficerProfile
from clearance.core.offices import OfficeRegistry
from clearance.core.workflow.states import RoutedTo
from clearance.db.store import SubmissionRecord
from .roles import ADMIN_ROLES, OVERSIGHT_ROLES


class OfficerAccessPolicy:
    """Checks officer access to clearance submissions."""

    def __init__(self, registry: OfficeRegistry, oversight_office_ids: Optional[Iterable[str]] = None):
        """
        Args:
            registry: Office registry used to resolve aliases
            oversight_office_ids: Offices whose officers may view every office
        """
        self.registry = registry
        self.oversight_office_ids = set()
        for office_id in oversight_office_ids or ():
            office = registry.get(office_id)
            self.oversight_office_ids.add(office.id if office else office_id.strip().lower())

    def resolve_office_id(self, office_id: Optional[str]) -> Optional[str]:
        """Canonical id for an office id or alias, None when unknown."""
        office = self.registry.get(office_id)
        return office.id if office else None

    def is_oversight(self, officer: Optional[OfficerProfile]) -> bool:
        if officer is None:
            return False
        if officer.role in OVERSIGHT_ROLES:
            return True
        assigned = officer.assigned_office_id
        if not assigned:
            return False
        return (self.resolve_office_id(assigned) or assigned.strip().lower()) in self.oversight_office_ids

    def is_admin(self, officer: Optional[OfficerProfile]) -> bool:
        return officer is not None and officer.role in ADMIN_ROLES

    def is_assigned_to(self, officer: OfficerProfile, office_id: str) -> bool:
        assigned = self.resolve_office_id(officer.assigned_office_id)
        return assigned is not None and assigned == self.resolve_office_id(office_id)

    def in_scope(self, officer: OfficerProfile, submission: SubmissionRecord) -> bool:
        """Whether the student falls inside the officer's department and faculty."""
        if officer.assigned_department_id and officer.assigned_department_id != submission.student_department_id:
            return False
        if officer.faculty_id and officer.faculty_id != submission.student_faculty_id:
            return False
        return True

    def _denial_reason(self, officer: OfficerProfile, submission: SubmissionRecord) -> Optional[str]:
        if not self.is_assigned_to(officer, submission.office_id):
            return "You are not assigned to this office"
        if not self.in_scope(officer, submission):
            return "This submission belongs to a student outside your department or faculty"
        if isinstance(submission.assignment, RoutedTo) and submission.assignment.officer_id != officer.id:
            return "This submission was routed to another officer"
        return None

    def can_act(self, officer: OfficerProfile, submission: SubmissionRecord) -> bool:
        """Whether the officer may approve or reject the submission."""
        return self._denial_reason(officer, submission) is None

    def check_can_act(self, officer: OfficerProfile, submission: SubmissionRecord) -> None:
        """
        Raise if the officer may not action the submission.

        Raises:
            Forbidden: With the reason the officer was turned away
        """
        reason = self._denial_reason(officer, submission)
        if reason is not None:
            raise Forbidden(reason)

    def can_view(self, officer: OfficerProfile, submission: SubmissionRecord) -> bool:
        if self.is_oversight(officer):
            return True
        return self.is_assigned_to(officer, submission.office_id) and self.in_scope(officer, submission)

    def can_view_office(self, officer: OfficerProfile, office_id: str) -> bool:
        return self.is_oversight(officer) or self.is_assigned_to(officer, office_id)

    def filter_visible(
        self,
        officer: OfficerProfile,
        submissions: Iterable[SubmissionRecord],
    ) -> List[SubmissionRecord]:
        """Drop submissions the officer may not see."""
        return [s for s in submissions if self.can_view(officer, s)]
