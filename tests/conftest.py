"""
Runner Check-in - Test Configuration and Fixtures
"""
import base64
import io
import os

import pytest
from faker import Faker
from PIL import Image

# Set testing environment before the app reads it
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['CF_ACCESS_KEY_ID'] = 'test-access-key'
os.environ['CF_SECRET_ACCESS_KEY'] = 'test-secret-key'
os.environ['CLOUDFLARE_R2_BUCKET'] = 'test-bucket'
os.environ['CLOUDFLARE_R2_ENDPOINT'] = 'https://r2.example.test'

from fastapi.testclient import TestClient

from runner_checkin.main import app
from runner_checkin import models
from runner_checkin.auth_utils import create_access_token
from runner_checkin.database import Base, SessionLocal, engine
from runner_checkin.seed import create_or_update_user
from runner_checkin.storage import StorageError, StoredObject, get_storage

fake = Faker()


class InMemoryStorage:
    """Stands in for R2 during tests."""

    def __init__(self):
        self.objects = {}
        self.fail_uploads = False

    def put_object(self, key, body, content_type, metadata=None):
        if self.fail_uploads:
            raise StorageError(f"Failed to upload {key}")
        self.objects[key] = {"body": body, "content_type": content_type, "metadata": metadata or {}}

    def get_object(self, key):
        stored = self.objects.get(key)
        if stored is None:
            return None
        return StoredObject(body=stored["body"], content_type=stored["content_type"])


def make_data_uri(fmt="PNG", mode="RGB", size=(24, 16), color=(200, 30, 30)):
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    mime = "image/png" if fmt == "PNG" else "image/jpeg"
    return f"data:{mime};base64,{base64.b64encode(buffer.getvalue()).decode('ascii')}"


@pytest.fixture
def db_session():
    """Fresh schema for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def client(db_session, storage):
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db_session):
    return create_or_update_user(db_session, "desk-admin", "adminpassword123", "admin@example.com", models.UserRole.admin)


@pytest.fixture
def staff_user(db_session):
    return create_or_update_user(db_session, "desk-staff", "staffpassword123", None, models.UserRole.staff)


def headers_for(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def admin_headers(admin_user):
    return headers_for(admin_user)


@pytest.fixture
def auth_headers(staff_user):
    return headers_for(staff_user)


@pytest.fixture
def event(db_session, admin_user):
    from datetime import date

    event = models.Event(
        event_name="City Half Marathon",
        event_start_date=date(2026, 11, 8),
        location="Riverside Park",
        created_by=admin_user.id,
    )
    db_session.add(event)
    db_session.commit()
    db_session.refresh(event)
    return event


@pytest.fixture
def make_participant(db_session):
    def _make(event, bib_no, **fields):
        first_name = fields.pop("first_name", fake.first_name())
        last_name = fields.pop("last_name", fake.last_name())
        participant = models.Participant(
            event_id=event.id,
            bib_no=bib_no,
            first_name=first_name,
            last_name=last_name,
            full_name=f"{first_name} {last_name}",
            **fields
        )
        db_session.add(participant)
        db_session.commit()
        db_session.refresh(participant)
        return participant

    return _make
