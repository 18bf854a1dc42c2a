from __future__ import annotations

from typing import Generator
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.common.models import (
    Base,
    Gender,
    Race,
    State,
    User,
    Workspace,
    WorkspaceMember,
)
from app.imports.service import ImportSessionService

# Use in-memory SQLite for tests (faster than Postgres for unit tests)
TEST_DB_URL = "sqlite:///:memory:"
engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Create a fresh database for each test.

    SQLAlchemy renders the PostgreSQL enums as VARCHAR on SQLite and the Uuid
    type works on both backends. Tables are dropped after each test.
    """
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with dependency overrides."""

    def get_test_db():
        yield db

    from app.common.db import get_db

    app.dependency_overrides[get_db] = get_test_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def test_user(db: Session) -> User:
    user = User(email="owner@example.com", display_name="Owner", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def workspace(db: Session, test_user: User) -> Workspace:
    """Workspace owned by test_user."""
    workspace = Workspace(name="Test Workspace", created_by=test_user.id)
    db.add(workspace)
    db.flush()
    db.add(WorkspaceMember(workspace_id=workspace.id, user_id=test_user.id, role="owner"))
    db.commit()
    db.refresh(workspace)
    return workspace


@pytest.fixture
def workspace_id(workspace: Workspace) -> UUID:
    return workspace.id


@pytest.fixture
def other_workspace(db: Session) -> Workspace:
    """A second workspace test_user is not a member of."""
    workspace = Workspace(name="Other Workspace")
    db.add(workspace)
    db.commit()
    db.refresh(workspace)
    return workspace


@pytest.fixture
def viewer_user(db: Session, workspace: Workspace) -> User:
    user = User(email="viewer@example.com", is_active=True)
    db.add(user)
    db.flush()
    db.add(WorkspaceMember(workspace_id=workspace.id, user_id=user.id, role="viewer"))
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def authenticated_user_token(test_user: User) -> str:
    from app.auth.utils import create_access_token

    return create_access_token({"sub": str(test_user.id), "user_id": str(test_user.id)})


@pytest.fixture
def auth_headers(authenticated_user_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {authenticated_user_token}"}


@pytest.fixture
def viewer_headers(viewer_user: User) -> dict[str, str]:
    from app.auth.utils import create_access_token

    token = create_access_token({"sub": str(viewer_user.id), "user_id": str(viewer_user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def lookups(db: Session) -> dict[str, int]:
    """Seed gender, race and state lookup rows."""
    male = Gender(gender="Male")
    female = Gender(gender="Female")
    white = Race(race="White")
    wisconsin = State(name="Wisconsin", abbreviation="WI")
    db.add_all([male, female, white, wisconsin])
    db.commit()
    return {
        "Male": male.id,
        "Female": female.id,
        "White": white.id,
        "Wisconsin": wisconsin.id,
    }


@pytest.fixture
def sessions(db: Session) -> ImportSessionService:
    return ImportSessionService(db)


@pytest.fixture
def make_session(sessions: ImportSessionService, workspace: Workspace, test_user: User):
    """Factory creating import sessions in the test workspace."""

    def _make(entity_type: str = "contacts", total_records: int = 1, **kwargs):
        return sessions.create_session(
            workspace_id=workspace.id,
            entity_type=entity_type,
            filename=kwargs.pop("filename", f"{entity_type}.csv"),
            total_records=total_records,
            created_by=test_user.id,
            **kwargs,
        )

    return _make
