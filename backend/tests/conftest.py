import os
# Override DATABASE_URL before any app imports to avoid PostgreSQL driver requirement
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
# Keep background work and outbound email off for unit/API tests. Individual
# tests can opt-in by monkeypatching settings.
os.environ["MVP_DISABLE_CELERY"] = "true"
os.environ["NOTIFICATIONS_DISABLE_SENDING"] = "true"
os.environ["CRON_SECRET"] = ""

import uuid
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from app.platform.database import Base, get_db
from app.main import app
from app.platform.middleware import _rate_limit_store
from app.models.developer import ApprovalStatus, AvailabilityStatus, DeveloperProfile, DeveloperSkill
from app.models.project import Project, ProjectStatus
from app.models.skill import Skill
from app.models.user import USER_ROLE_CLIENT, USER_ROLE_DEVELOPER, User

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Enable foreign key support for SQLite
@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    Base.metadata.create_all(bind=engine)
    # Clear in-memory rate limit state between tests to prevent 429 bleed-through
    _rate_limit_store.clear()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    _rate_limit_store.clear()
    Base.metadata.drop_all(bind=engine)


# ---------------------------------------------------------------------------
# Factory helpers: create rows directly for service-level tests
# ---------------------------------------------------------------------------

_counter = 0

def _unique_id() -> str:
    global _counter
    _counter += 1
    return f"{_counter}-{uuid.uuid4().hex[:8]}"


def make_user(db, role=USER_ROLE_CLIENT, email=None, full_name="Test User", is_superuser=False) -> User:
    user = User(
        email=email or f"{role}-{_unique_id()}@test.com",
        hashed_password="not-a-real-hash",
        is_active=True,
        is_superuser=is_superuser,
        is_verified=True,
        role=role,
        full_name=full_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_skill(db, slug=None, name=None) -> Skill:
    slug = slug or f"skill-{_unique_id()}"
    skill = Skill(slug=slug, name=name or slug.title())
    db.add(skill)
    db.commit()
    db.refresh(skill)
    return skill


def make_developer(
    db,
    level="FRESHER",
    skill_ids=(),
    approved=True,
    available=True,
    whatsapp_verified=True,
    usual_response_time_ms=None,
) -> DeveloperProfile:
    user = make_user(db, role=USER_ROLE_DEVELOPER)
    profile = DeveloperProfile(
        user_id=user.id,
        level=level,
        admin_approval_status=ApprovalStatus.APPROVED if approved else ApprovalStatus.PENDING,
        availability_status=AvailabilityStatus.AVAILABLE if available else AvailabilityStatus.NOT_AVAILABLE,
        whatsapp_verified=whatsapp_verified,
        usual_response_time_ms=usual_response_time_ms,
    )
    profile.skills = [DeveloperSkill(skill_id=skill_id) for skill_id in skill_ids]
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile


def make_project(db, client_user, skill_ids, title="Build a dashboard", status=ProjectStatus.SUBMITTED) -> Project:
    project = Project(
        client_id=client_user.id,
        title=title,
        description="Internal analytics dashboard",
        skills_required=list(skill_ids),
        status=status,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


# ---------------------------------------------------------------------------
# API helpers
# ---------------------------------------------------------------------------

def register_user(client, email=None, password="TestPass123!", full_name="Test User", role="client", developer_level=None):
    """Register a user via the API. Returns the response."""
    email = email or f"{role}-{_unique_id()}@test.com"
    payload = {
        "email": email,
        "password": password,
        "full_name": full_name,
        "role": role,
    }
    if developer_level is not None:
        payload["developer_level"] = developer_level
    return client.post("/api/v1/auth/register", json=payload)


def login_user(client, email, password="TestPass123!"):
    """Log in a user via the API (FastAPI-Users JWT). Returns the response."""
    return client.post(
        "/api/v1/auth/jwt/login",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )


def auth_headers(client, email=None, password="TestPass123!", role="client", developer_level=None):
    """Register and log in a user, returning (headers_dict, email)."""
    email = email or f"{role}-{_unique_id()}@test.com"
    reg = register_user(client, email=email, password=password, role=role, developer_level=developer_level)
    assert reg.status_code == 201, f"Registration failed: {reg.text}"
    login_resp = login_user(client, email, password)
    assert login_resp.status_code == 200, f"Login failed: {login_resp.text}"
    token = login_resp.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}, email


def admin_headers(client):
    """Register a user and promote it to superuser directly in the DB."""
    headers, email = auth_headers(client)
    db = TestingSessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        user.is_superuser = True
        db.commit()
    finally:
        db.close()
    return headers


def create_skill_in_db(slug=None) -> int:
    db = TestingSessionLocal()
    try:
        return make_skill(db, slug=slug).id
    finally:
        db.close()


def approved_developer_headers(client, skill_ids, level="MID", whatsapp_verified=True):
    """Register a developer via the API, approve it and attach skills.

    Returns (headers, developer_profile_id).
    """
    headers, email = auth_headers(client, role="developer", developer_level=level)
    db = TestingSessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        profile = user.developer_profile
        profile.admin_approval_status = ApprovalStatus.APPROVED
        profile.whatsapp_verified = whatsapp_verified
        for skill_id in skill_ids:
            profile.skills.append(DeveloperSkill(skill_id=skill_id))
        db.commit()
        return headers, profile.id
    finally:
        db.close()


def create_project_via_api(client, headers, skill_ids, **overrides):
    payload = {
        "title": overrides.get("title", f"Project-{_unique_id()}"),
        "description": overrides.get("description", "Need help shipping a feature"),
        "budget": overrides.get("budget", 1500),
        "skills_required": list(skill_ids),
    }
    return client.post("/api/v1/projects", json=payload, headers=headers)
