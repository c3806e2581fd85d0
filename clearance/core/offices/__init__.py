"""Static registry of clearance offices."""

from .registry import (
    ClearanceOffice,
    OfficeRegistry,
    OfficeScope,
    RegistryConfigurationError,
    DEFAULT_OFFICES,
    default_office_registry,
    load_office_registry,
)

__all__ = [
    "ClearanceOffice",
    "OfficeRegistry",
    "OfficeScope",
    "RegistryConfigurationError",
    "DEFAULT_OFFICES",
    "default_office_registry",
    "load_office_registry",
]
