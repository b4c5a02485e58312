import itertools
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ESCALATION_ENABLED"] = "false"
os.environ["GEOCODING_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"

import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine
from app_models import Complaint, utcnow
from app_utils.constants import ComplaintStatus, UserRole
from app_utils.security import create_access_token, get_password_hash
import crud

DEFAULT_PASSWORD = "Secret@123"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(role=UserRole.CITIZEN, name=None, email=None, password=DEFAULT_PASSWORD):
        n = next(counter)
        return crud.create_user(
            db,
            name=name or f"{role.value.title()} User {n}",
            email=email or f"{role.value.lower()}{n}@example.com",
            hashed_password=get_password_hash(password),
            phone="9876543210",
            role=role,
        )

    return _make


@pytest.fixture
def make_complaint(db):
    def _make(owner, category="ROADS", latitude=12.90, longitude=77.58, created_at=None,
              status=ComplaintStatus.SUBMITTED, **fields):
        created_at = created_at or utcnow()
        complaint = Complaint(
            owner=owner,
            title="Pothole on the main road",
            description="Large pothole near the bus stop causing accidents every day",
            category=category,
            latitude=latitude,
            longitude=longitude,
            status=status,
            created_at=created_at,
            updated_at=created_at,
            **fields,
        )
        db.add(complaint)
        db.commit()
        db.refresh(complaint)
        return complaint

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}

    return _headers
