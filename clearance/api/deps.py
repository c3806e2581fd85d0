import json
import logging
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Generator, Optional

from fastapi import Depends, HTTPException, Request, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from clearance.api.schemas.clearance import IdentityClaims
from clearance.core.access.policy import OfficerAccessPolicy
from clearance.core.access.roles import UserRole
from clearance.core.config import get_settings
from clearance.core.identity import CurrentUser, OfficerProfile, StudentProfile
from clearance.core.offices import OfficeRegistry, default_office_registry, load_office_registry
from clearance.core.workflow.engine import ClearanceWorkflowEngine
from clearance.db.session import SessionLocal
from clearance.db.sql_store import SqlAlchemySubmissionStore
from clearance.services.final_forms import FinalFormsService
from clearance.services.notifications import (
    DatabaseNotificationSink,
    NotificationDispatcher,
    NotificationSink,
    WebhookNotificationSink,
)

logger = logging.getLogger(__name__)

IDENTITY_HEADER = "X-Identity"


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_registry() -> OfficeRegistry:
    """Office registry, loaded once per process."""
    settings = get_settings()
    if settings.office_registry_path:
        return load_office_registry(settings.office_registry_path)
    return default_office_registry()


def get_policy(registry: OfficeRegistry = Depends(get_registry)) -> OfficerAccessPolicy:
    return OfficerAccessPolicy(registry, get_settings().oversight_office_ids_list)


def get_store(db: Session = Depends(get_db)) -> SqlAlchemySubmissionStore:
    return SqlAlchemySubmissionStore(db)


def get_inbox(db: Session = Depends(get_db)) -> DatabaseNotificationSink:
    return DatabaseNotificationSink(db)


def get_dispatcher(inbox: DatabaseNotificationSink = Depends(get_inbox)) -> NotificationDispatcher:
    """In-app notifications, plus the webhook when one is configured."""
    settings = get_settings()
    sinks: list[NotificationSink] = [inbox]
    if settings.notification_webhook_url:
        sinks.append(WebhookNotificationSink(
            settings.notification_webhook_url,
            timeout=settings.webhook_timeout,
        ))
    return NotificationDispatcher(sinks)


def get_engine(
    store: SqlAlchemySubmissionStore = Depends(get_store),
    registry: OfficeRegistry = Depends(get_registry),
    policy: OfficerAccessPolicy = Depends(get_policy),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ClearanceWorkflowEngine:
    return ClearanceWorkflowEngine(store, registry, policy, dispatcher)


def get_final_forms(store: SqlAlchemySubmissionStore = Depends(get_store)) -> FinalFormsService:
    return FinalFormsService(store)


class IdentityProvider(ABC):
    """Resolves the authenticated user of a request."""

    @abstractmethod
    def get_current_user(self, request: Request) -> Optional[CurrentUser]:
        """Return the user, or None when the request is unauthenticated."""


class HeaderIdentityProvider(IdentityProvider):
    """
    Reads identity claims set by the trusted gateway.

    The ``X-Identity`` header carries JSON such as::

        {"id": "u1", "role": "STUDENT",
         "student": {"id": "s1", "name": "Ada", "matric_number": "CSC/01"}}
    """

    def __init__(self, header: str = IDENTITY_HEADER):
        self.header = header

    def get_current_user(self, request: Request) -> Optional[CurrentUser]:
        raw = request.headers.get(self.header)
        if not raw:
            return None
        try:
            claims = IdentityClaims.model_validate(json.loads(raw))
        except (ValueError, PydanticValidationError):
            logger.warning(f"Rejected malformed {self.header} header")
            return None
        return claims.to_current_user()


def get_identity_provider() -> IdentityProvider:
    return HeaderIdentityProvider()


def get_current_user(
    request: Request,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> CurrentUser:
    """Get the current authenticated user."""
    user = provider.get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    return user


def require_student(current_user: CurrentUser = Depends(get_current_user)) -> StudentProfile:
    if current_user.role != UserRole.STUDENT or current_user.student is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Student access required",
        )
    return current_user.student


def require_officer(current_user: CurrentUser = Depends(get_current_user)) -> OfficerProfile:
    if current_user.role not in (UserRole.OFFICER, UserRole.ADMIN) or current_user.officer is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Officer access required",
        )
    return current_user.officer


def require_oversight(
    officer: OfficerProfile = Depends(require_officer),
    policy: OfficerAccessPolicy = Depends(get_policy),
) -> OfficerProfile:
    if not policy.is_oversight(officer):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Oversight access required",
        )
    return officer
