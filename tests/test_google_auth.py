"""Tests for Google sign-in: account merge, linking and the redirect flow."""

from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy.exc import IntegrityError

from instaclone.api.auth import OAUTH_STATE_COOKIE
from instaclone.errors import Conflict, InvalidCredentials
from instaclone.models.user import User
from instaclone.services.auth import AuthService
from instaclone.services.google_oauth import GoogleProfile
from instaclone.services.tokens import TokenIssuer


@pytest.fixture
def auth_service(db, mail_sender):
    return AuthService(db, TokenIssuer("test-secret"), mail_sender)


def count_users(db) -> int:
    db.expire_all()
    return db.query(User).count()


def test_google_verify_creates_verified_user(client, google_profiles, db):
    google_profiles["tok"] = GoogleProfile(
        google_id="g-100",
        email="Jane@Example.com",
        display_name="Jane Doe",
        avatar_url="https://lh3.googleusercontent.com/jane.png",
    )

    response = client.post("/api/auth/google/verify", json={"googleToken": "tok"})
    assert response.status_code == 200
    data = response.json()
    assert data["token"]
    assert data["user"]["username"] == "janedoe"
    assert data["user"]["email"] == "jane@example.com"
    assert data["user"]["isEmailVerified"] is True
    assert data["user"]["profilePicture"] == "https://lh3.googleusercontent.com/jane.png"

    user = db.query(User).filter(User.google_id == "g-100").one()
    assert user.password_hash is None
    assert user.last_login_at is not None


def test_google_verify_invalid_token(client):
    response = client.post("/api/auth/google/verify", json={"googleToken": "bogus"})
    assert response.status_code == 401
    assert response.json()["kind"] == "InvalidExternalToken"


def test_google_verify_twice_does_not_duplicate(client, google_profiles, db):
    google_profiles["tok"] = GoogleProfile(google_id="g-100", email="jane@example.com", display_name="Jane")

    first = client.post("/api/auth/google/verify", json={"googleToken": "tok"})
    second = client.post("/api/auth/google/verify", json={"googleToken": "tok"})

    assert first.status_code == second.status_code == 200
    assert first.json()["user"]["id"] == second.json()["user"]["id"]
    assert count_users(db) == 1


def test_google_links_existing_password_account(client, google_profiles, registered_user, db):
    google_profiles["tok"] = GoogleProfile(
        google_id="g-ann",
        email="a@x.com",
        display_name="Someone Else",
        avatar_url="https://lh3.googleusercontent.com/ann.png",
    )

    response = client.post("/api/auth/google/verify", json={"googleToken": "tok"})
    assert response.status_code == 200
    data = response.json()
    assert data["user"]["username"] == "ann"
    assert data["user"]["isEmailVerified"] is True
    assert data["user"]["profilePicture"] == "https://lh3.googleusercontent.com/ann.png"

    db.expire_all()
    user = db.query(User).filter(User.email == "a@x.com").one()
    assert user.google_id == "g-ann"
    assert user.password_hash is not None
    assert user.otp_code is None
    assert count_users(db) == 1

    # Password login still works after linking
    login = client.post("/api/auth/login", json={"username": "ann", "password": "secret123"})
    assert login.status_code == 200


def test_google_keeps_existing_avatar(auth_service, make_user):
    make_user(username="kim", email="kim@x.com", google_id="g-kim", profile_picture="https://cdn/kim.png")

    result = auth_service.google_authenticate(
        GoogleProfile(google_id="g-kim", email="kim@x.com", avatar_url="https://lh3/new.png")
    )
    assert result.user.profile_picture == "https://cdn/kim.png"


def test_google_fills_missing_avatar_for_existing_identity(auth_service, make_user):
    make_user(username="kim", email="kim@x.com", google_id="g-kim")

    result = auth_service.google_authenticate(
        GoogleProfile(google_id="g-kim", email="kim@x.com", avatar_url="https://lh3/new.png")
    )
    assert result.user.profile_picture == "https://lh3/new.png"
    assert result.user.last_login_at is not None


def test_google_email_linked_to_other_google_account(auth_service, make_user):
    make_user(username="kim", email="kim@x.com", google_id="g-one")

    with pytest.raises(Conflict):
        auth_service.google_authenticate(GoogleProfile(google_id="g-two", email="kim@x.com"))


def test_google_rejects_disabled_linked_account(auth_service, make_user, db):
    make_user(username="kim", email="kim@x.com", google_id="g-kim", is_active=False)

    with pytest.raises(InvalidCredentials):
        auth_service.google_authenticate(
            GoogleProfile(google_id="g-kim", email="kim@x.com", avatar_url="https://lh3/new.png")
        )

    db.expire_all()
    user = db.query(User).filter(User.google_id == "g-kim").one()
    assert user.last_login_at is None
    assert user.profile_picture == ""


def test_google_does_not_link_disabled_password_account(auth_service, make_user, db):
    make_user(username="kim", email="kim@x.com", is_active=False)

    with pytest.raises(InvalidCredentials):
        auth_service.google_authenticate(GoogleProfile(google_id="g-kim", email="kim@x.com"))

    db.expire_all()
    user = db.query(User).filter(User.email == "kim@x.com").one()
    assert user.google_id is None
    assert not user.is_email_verified
    assert user.last_login_at is None


def test_google_generates_suffixed_username(auth_service, make_user, db):
    make_user(username="janedoe", email="jd1@x.com")
    make_user(username="janedoe1", email="jd2@x.com")

    result = auth_service.google_authenticate(
        GoogleProfile(google_id="g-jd", email="jane@x.com", display_name="Jane Doe")
    )
    assert result.user.username == "janedoe2"
    assert result.user.full_name == "Jane Doe"


def test_google_without_display_name_uses_email(auth_service):
    result = auth_service.google_authenticate(GoogleProfile(google_id="g-x", email="first.last@x.com"))
    assert result.user.username == "firstlast"
    assert result.user.full_name == "first.last"


def test_google_token_resolves_to_user(auth_service):
    tokens = TokenIssuer("test-secret")
    result = auth_service.google_authenticate(GoogleProfile(google_id="g-x", email="x@x.com"))
    assert tokens.verify(result.token) == result.user.id


def test_google_concurrent_creation_resolves_to_existing(auth_service, make_user, db):
    """A unique-key collision on commit retries and returns the winning row."""
    winner = make_user(username="racer", email="racer@x.com", google_id="g-race")
    original_merge = auth_service._merge_google_identity
    calls = []

    def racing_merge(profile, now):
        calls.append(profile.google_id)
        if len(calls) == 1:
            # Simulate a request that missed the other request's insert
            duplicate = User(
                username="racer1",
                email="racer@x.com",
                full_name="Racer",
                google_id=profile.google_id,
                is_email_verified=True,
            )
            db.add(duplicate)
            return duplicate
        return original_merge(profile, now)

    auth_service._merge_google_identity = racing_merge

    result = auth_service.google_authenticate(GoogleProfile(google_id="g-race", email="racer@x.com"))

    assert len(calls) == 2
    assert result.user.id == winner.id
    assert count_users(db) == 1


def test_google_gives_up_after_repeated_conflicts(auth_service, monkeypatch):
    def always_conflicting_commit():
        raise IntegrityError("INSERT", {}, Exception("duplicate"))

    monkeypatch.setattr(auth_service.db, "commit", always_conflicting_commit)

    with pytest.raises(Conflict):
        auth_service.google_authenticate(GoogleProfile(google_id="g-loop", email="loop@x.com"))


def test_google_redirect_sets_state_cookie(client):
    response = client.get("/api/auth/google", follow_redirects=False)
    assert response.status_code == 302

    location = urlparse(response.headers["location"])
    assert location.netloc == "accounts.google.com"
    query = parse_qs(location.query)
    assert query["client_id"] == ["test-client-id"]
    assert query["response_type"] == ["code"]
    assert query["state"]
    assert OAUTH_STATE_COOKIE in response.cookies


def _start_google_flow(client) -> str:
    response = client.get("/api/auth/google", follow_redirects=False)
    state = parse_qs(urlparse(response.headers["location"]).query)["state"][0]
    nonce = response.cookies[OAUTH_STATE_COOKIE]
    client.cookies.clear()
    client.cookies.set(OAUTH_STATE_COOKIE, nonce)
    return state


def test_google_callback_success(client, google_profiles, db):
    google_profiles["auth-code"] = GoogleProfile(google_id="g-cb", email="cb@x.com", display_name="Call Back")
    state = _start_google_flow(client)

    response = client.get(
        "/api/auth/google/callback",
        params={"code": "auth-code", "state": state},
        follow_redirects=False,
    )
    assert response.status_code == 302
    location = urlparse(response.headers["location"])
    assert location.path == "/auth/success"
    token = parse_qs(location.query)["token"][0]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "cb@x.com"


def test_google_callback_rejects_bad_state(client, google_profiles):
    google_profiles["auth-code"] = GoogleProfile(google_id="g-cb", email="cb@x.com")
    _start_google_flow(client)

    response = client.get(
        "/api/auth/google/callback",
        params={"code": "auth-code", "state": "forged"},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert response.headers["location"].endswith("/login?error=auth_failed")


def test_google_callback_cancelled(client):
    response = client.get(
        "/api/auth/google/callback",
        params={"error": "access_denied"},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert response.headers["location"].endswith("/login?error=auth_cancelled")


def test_google_callback_provider_rejects_code(client):
    state = _start_google_flow(client)

    response = client.get(
        "/api/auth/google/callback",
        params={"code": "unknown-code", "state": state},
        follow_redirects=False,
    )
    assert response.status_code == 302
    assert response.headers["location"].endswith("/login?error=auth_failed")
