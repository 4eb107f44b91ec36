"""Pytest configuration and fixtures."""

import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from instaclone.api.dependencies import get_google_client, get_mail_sender
from instaclone.config import Settings
from instaclone.database import Base, get_db
from instaclone.errors import ExternalServiceFailure, InvalidExternalToken
from instaclone.main import app
from instaclone.models.user import User
from instaclone.services.google_oauth import GoogleOAuthClient, GoogleProfile

# Use test database - PostgreSQL when DATABASE_URL points at one, SQLite locally
if os.getenv("DATABASE_URL", "").startswith("postgresql"):
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL") + "_test"
else:
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeMailSender:
    """Records outgoing mail instead of calling Brevo."""

    def __init__(self) -> None:
        self.otp_emails: list[dict] = []
        self.reset_emails: list[dict] = []
        self.fail = False

    def send_otp_email(self, to_email: str, user_name: str, otp: str) -> str:
        if self.fail:
            raise ExternalServiceFailure("Email sending failed")
        self.otp_emails.append({"to": to_email, "name": user_name, "otp": otp})
        return f"msg-{len(self.otp_emails)}"

    def send_password_reset_email(self, to_email: str, user_name: str, reset_link: str) -> str:
        if self.fail:
            raise ExternalServiceFailure("Email sending failed")
        self.reset_emails.append({"to": to_email, "name": user_name, "link": reset_link})
        return f"reset-{len(self.reset_emails)}"

    def last_otp(self, email: str) -> str:
        codes = [m["otp"] for m in self.otp_emails if m["to"] == email]
        assert codes, f"no OTP email sent to {email}"
        return codes[-1]


class FakeGoogleClient(GoogleOAuthClient):
    """Google client whose provider calls resolve against a fixed token table."""

    def __init__(self, profiles: dict[str, GoogleProfile]) -> None:
        super().__init__(
            Settings(
                google_client_id="test-client-id",
                google_client_secret="test-client-secret",
                jwt_secret="test-secret",
            )
        )
        self.profiles = profiles

    def exchange_code(self, code: str) -> GoogleProfile:
        return self.verify_id_token(code)

    def verify_id_token(self, token: str) -> GoogleProfile:
        if token not in self.profiles:
            raise InvalidExternalToken()
        return self.profiles[token]


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def mail_sender():
    return FakeMailSender()


@pytest.fixture
def google_profiles():
    """Token -> profile table used by the fake Google client; tests add entries."""
    return {}


@pytest.fixture(scope="function")
def client(db, mail_sender, google_profiles):
    """Create a test client with database and provider overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mail_sender] = lambda: mail_sender
    app.dependency_overrides[get_google_client] = lambda: FakeGoogleClient(google_profiles)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def ann():
    """Registration payload used across tests."""
    return {"username": "ann", "email": "a@x.com", "password": "secret123", "fullName": "Ann Lee"}


@pytest.fixture
def registered_user(client, ann):
    response = client.post("/api/auth/register", json=ann)
    assert response.status_code == 201
    return ann


@pytest.fixture
def verified_user(client, mail_sender, registered_user):
    otp = mail_sender.last_otp(registered_user["email"])
    response = client.post("/api/auth/verify-otp", json={"email": registered_user["email"], "otp": otp})
    assert response.status_code == 200
    return registered_user


@pytest.fixture
def make_user(db):
    """Insert user rows directly, bypassing the API."""

    def _make_user(**fields) -> User:
        fields.setdefault("full_name", fields["username"].title())
        if "google_id" not in fields:
            fields.setdefault("password_hash", "not-a-real-hash")
        user = User(**fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user
