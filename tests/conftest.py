"""Pytest configuration and shared fixtures.

Database fixtures use an in-memory SQLite database shared through a
StaticPool so the API test client and the test body see the same data.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clearance.core.access.policy import OfficerAccessPolicy
from clearance.core.offices import ClearanceOffice, OfficeRegistry, OfficeScope
from clearance.core.workflow.engine import ClearanceWorkflowEngine
from clearance.db import models  # noqa: F401  registers tables
from clearance.db.base import Base
from clearance.db.sql_store import SqlAlchemySubmissionStore
from clearance.services.final_forms import FinalFormsService
from clearance.services.notifications import NotificationDispatcher
from tests.factories import RecordingSink


TEST_OFFICES = (
    ClearanceOffice("department_hod", "Head of Department", 1, OfficeScope.DEPARTMENT, ("hod",)),
    ClearanceOffice("faculty_officer", "Faculty Officer", 2, OfficeScope.FACULTY, ("faculty",)),
    ClearanceOffice("university_librarian", "University Librarian", 3, aliases=("library",)),
)


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Session bound to the in-memory database."""
    session = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def registry() -> OfficeRegistry:
    """HOD (1, department) -> Faculty Officer (2, faculty) -> Librarian (3)."""
    return OfficeRegistry(TEST_OFFICES)


@pytest.fixture
def store(db_session) -> SqlAlchemySubmissionStore:
    return SqlAlchemySubmissionStore(db_session)


@pytest.fixture
def policy(registry) -> OfficerAccessPolicy:
    return OfficerAccessPolicy(registry, ["student_affairs"])


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def engine(store, registry, policy, sink) -> ClearanceWorkflowEngine:
    return ClearanceWorkflowEngine(store, registry, policy, NotificationDispatcher([sink]))


@pytest.fixture
def final_forms(store) -> FinalFormsService:
    return FinalFormsService(store)


@pytest.fixture
def client(db_session, registry):
    """FastAPI test client wired to the test database and registry."""
    from clearance.api.deps import get_db, get_registry
    from clearance.api.main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registry] = lambda: registry

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
