import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["UPLOAD_RATE_LIMIT"] = "3/hour"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["S3_PUBLIC_URL"] = "http://storage.test"
os.environ["S3_BUCKET_NAME"] = "test-bucket"

import asyncio
from decimal import Decimal

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from app import app
from visionpolish import auth, crud, storage, tasks
from visionpolish.database import Base, SessionLocal, engine
from visionpolish.ratelimit import limiter
from visionpolish.session import AuthenticatedUser, ProfileData, ProfileResult, SessionContext

PASSWORD = "Sunny#Harbor7Kite"

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeS3:
    """In-memory stand-in for the boto3 S3 client"""

    def __init__(self):
        self.objects = {}
        self.calls = 0
        self.fail_on_calls = set()

    def put_object(self, Bucket, Key, Body, ContentType, CacheControl=None):
        self.calls += 1
        if self.calls in self.fail_on_calls:
            raise ClientError({"Error": {"Code": "500", "Message": "Internal error"}}, "PutObject")
        self.objects[Key] = {"body": Body, "content_type": ContentType}

    def head_bucket(self, Bucket):
        return {}

    def create_bucket(self, Bucket):
        return {}


class FakeTask:
    def __init__(self):
        self.calls = []

    def delay(self, *args):
        self.calls.append(args)


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    limiter.reset()
    yield


@pytest.fixture(autouse=True)
def fake_s3(monkeypatch):
    client = FakeS3()
    monkeypatch.setattr(storage, "s3_client", client)
    return client


@pytest.fixture(autouse=True)
def sync_task(monkeypatch):
    task = FakeTask()
    monkeypatch.setattr(tasks, "sync_profile", task)
    return task


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


def create_account(db, email, role, full_name=None):
    user = auth.sign_up(db, email, PASSWORD, full_name)
    crud.create_profile(db, user.id, full_name=full_name or email.split("@")[0], role=role)
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {auth.token_for_user(user)}"}


@pytest.fixture
def customer(db):
    return create_account(db, "jane@example.com", "customer", "Jane Customer")


@pytest.fixture
def editor(db):
    return create_account(db, "eddie@example.com", "editor", "Eddie Editor")


@pytest.fixture
def admin(db):
    return create_account(db, "root@example.com", "admin", "Ada Admin")


@pytest.fixture
def staff(db):
    return create_account(db, "sam@example.com", "staff", "Sam Staff")


@pytest.fixture
def service(db):
    return crud.create_service(
        db,
        name="Background Removal",
        description="Clean cut-out on a white background",
        category="retouching",
        base_price=Decimal("10.00"),
        turnaround_time="24 hours",
        features=["White background", "PNG export"],
        is_active=True,
    )


def cart_photos(count):
    return [
        {
            "url": f"uploads/1700000000000-token{i:011d}.jpg",
            "path": f"uploads/1700000000000-token{i:011d}.jpg",
            "filename": f"photo{i}.jpg",
            "size": 2048,
            "mime_type": "image/jpeg",
        }
        for i in range(count)
    ]


def session_for(user, role):
    """SessionContext for calling domain functions directly"""
    profile = ProfileData(id=user.id, role=role, full_name=user.full_name)
    return SessionContext(
        user=AuthenticatedUser(id=user.id, email=user.email, full_name=user.full_name),
        profile_result=ProfileResult(profile=profile, authoritative=True),
    )


def track_event_loop(fake_s3, monkeypatch):
    """Record, per storage write, whether it ran on a thread with a running event loop"""
    seen = []
    put_object = fake_s3.put_object

    def tracking_put_object(**kwargs):
        try:
            asyncio.get_running_loop()
            seen.append(True)
        except RuntimeError:
            seen.append(False)
        return put_object(**kwargs)

    monkeypatch.setattr(fake_s3, "put_object", tracking_put_object)
    return seen
