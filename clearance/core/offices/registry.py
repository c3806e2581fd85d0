"""Clearance office registry.

Holds the static, ordered list of approval offices a student must clear.
The registry is built once at process start, either from the built-in
university offices or from a YAML file, and never changes afterwards.

Example YAML::

    offices:
      - id: department_hod
        name: Head of Department (HOD)
        step: 1
        scope: department
        aliases: [hod, department]
      - id: university_librarian
        name: University Librarian
        step: 2
        aliases: [library]
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from clearance.core.errors import NotFound

logger = logging.getLogger(__name__)


class OfficeScope(str, Enum):
    """Which students an officer assigned to an office may act on."""

    UNIVERSITY = "university"   # Any student
    DEPARTMENT = "department"   # Students of the officer's department
    FACULTY = "faculty"         # Students of the officer's faculty


class RegistryConfigurationError(Exception):
    """Raised when the office registry is misconfigured. Fatal at startup."""


@dataclass(frozen=True)
class ClearanceOffice:
    """An approval authority in the clearance sequence."""

    id: str
    name: str
    step_number: int
    scope: OfficeScope = OfficeScope.UNIVERSITY
    aliases: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_department_specific(self) -> bool:
        return self.scope == OfficeScope.DEPARTMENT

    def matches(self, office_id: str) -> bool:
        norm = office_id.strip().lower()
        return norm == self.id or norm in self.aliases

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "step_number": self.step_number,
            "scope": self.scope.value,
        }


DEFAULT_OFFICES: Tuple[ClearanceOffice, ...] = (
    ClearanceOffice("department_hod", "Head of Department (HOD)", 1, OfficeScope.DEPARTMENT, ("hod", "department")),
    ClearanceOffice("faculty_officer", "Faculty Officer", 2, OfficeScope.FACULTY, ("faculty",)),
    ClearanceOffice("university_librarian", "University Librarian", 3, aliases=("library", "librarian")),
    ClearanceOffice("exams_transcript", "Exams and Transcript Office", 4, aliases=("exams", "transcript")),
    ClearanceOffice("bursary", "Bursary", 5, aliases=("bursar",)),
    ClearanceOffice("sports_council", "Sports Council", 6, aliases=("sports",)),
    ClearanceOffice("alumni_association", "Alumni Association", 7, aliases=("alumni",)),
    ClearanceOffice("internal_audit", "Internal Audit", 8, aliases=("audit",)),
    ClearanceOffice("student_affairs", "Student Affairs", 9, aliases=("student-affairs",)),
    ClearanceOffice("security_office", "Security Office", 10, aliases=("security",)),
)


class OfficeRegistry:
    """Immutable, step-ordered collection of clearance offices."""

    def __init__(self, offices: Iterable[ClearanceOffice]):
        offices = list(offices)
        _validate_offices(offices)
        # sorted() is stable, so same-step offices keep declaration order
        self._offices: Tuple[ClearanceOffice, ...] = tuple(
            sorted(offices, key=lambda o: o.step_number)
        )
        self._lookup: Dict[str, ClearanceOffice] = {}
        for office in self._offices:
            self._lookup[office.id] = office
            for alias in office.aliases:
                self._lookup[alias] = office

    def list_offices(self) -> Tuple[ClearanceOffice, ...]:
        """Return all offices ordered by step number."""
        return self._offices

    def get(self, office_id: Optional[str]) -> Optional[ClearanceOffice]:
        """Look up an office by canonical id or alias."""
        if not office_id:
            return None
        return self._lookup.get(office_id.strip().lower())

    def require(self, office_id: Optional[str]) -> ClearanceOffice:
        office = self.get(office_id)
        if office is None:
            raise NotFound(f"Unknown clearance office: {office_id}")
        return office

    def offices_before(self, step_number: int) -> List[ClearanceOffice]:
        """Offices that must be approved before ``step_number`` opens."""
        return [o for o in self._offices if o.step_number < step_number]

    def steps(self) -> List[int]:
        return sorted({o.step_number for o in self._offices})

    @property
    def first_step(self) -> int:
        return self._offices[0].step_number

    @property
    def total(self) -> int:
        return len(self._offices)

    def __iter__(self):
        return iter(self._offices)

    def __len__(self) -> int:
        return len(self._offices)


def _validate_offices(offices: List[ClearanceOffice]) -> None:
    if not offices:
        raise RegistryConfigurationError("Office registry must contain at least one office")

    seen: Dict[str, str] = {}
    for office in offices:
        if not office.id or not office.name:
            raise RegistryConfigurationError(f"Office id and name are required: {office!r}")
        if office.step_number < 1:
            raise RegistryConfigurationError(
                f"Office {office.id} has invalid step number {office.step_number}"
            )
        for key in (office.id, *office.aliases):
            if key in seen:
                raise RegistryConfigurationError(
                    f"Office key '{key}' used by both {seen[key]} and {office.id}"
                )
            seen[key] = office.id


def parse_office(office_dict: Dict[str, Any]) -> ClearanceOffice:
    """Parse a single office entry from configuration.

    Raises:
        RegistryConfigurationError: If required fields are missing or invalid
    """
    try:
        office_id = str(office_dict["id"]).strip().lower()
        step = int(office_dict["step"])
    except (KeyError, TypeError, ValueError) as e:
        raise RegistryConfigurationError(f"Invalid office entry {office_dict!r}: {e}") from e

    scope_value = office_dict.get("scope", OfficeScope.UNIVERSITY.value)
    try:
        scope = OfficeScope(str(scope_value).lower())
    except ValueError as e:
        raise RegistryConfigurationError(
            f"Office {office_id} has unknown scope '{scope_value}'"
        ) from e

    return ClearanceOffice(
        id=office_id,
        name=str(office_dict.get("name", office_id)),
        step_number=step,
        scope=scope,
        aliases=tuple(str(a).strip().lower() for a in office_dict.get("aliases", [])),
    )


def load_office_registry(config_path: str) -> OfficeRegistry:
    """Load the office registry from a YAML file.

    Environment variables in string values are expanded.

    Raises:
        RegistryConfigurationError: If the file is missing or malformed
    """
    config_file = Path(config_path)
    if not config_file.exists():
        raise RegistryConfigurationError(f"Office registry file not found: {config_path}")

    try:
        with config_file.open("r") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise RegistryConfigurationError(f"Invalid office registry YAML: {e}") from e

    if not isinstance(config, dict) or not isinstance(config.get("offices"), list):
        raise RegistryConfigurationError("Office registry must define an 'offices' list")

    offices = [parse_office(_expand_env_vars(entry)) for entry in config["offices"]]
    registry = OfficeRegistry(offices)
    logger.info(f"Loaded {registry.total} clearance offices from {config_path}")
    return registry


def default_office_registry() -> OfficeRegistry:
    return OfficeRegistry(DEFAULT_OFFICES)


def _expand_env_vars(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    return obj
