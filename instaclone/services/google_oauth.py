"""Google OAuth2 client for user authentication."""

import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import httpx
from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from jose import JWTError, jwt

from instaclone.config import Settings, get_settings
from instaclone.errors import ExternalServiceFailure, InvalidExternalToken, ServiceNotConfigured

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")
OAUTH_SCOPES = ("openid", "email", "profile")

STATE_PURPOSE = "google_oauth_state"
STATE_LIFETIME = timedelta(minutes=10)


@dataclass(frozen=True)
class GoogleProfile:
    """Identity asserted by a verified Google ID token."""

    google_id: str
    email: str
    display_name: str | None = None
    avatar_url: str | None = None


class GoogleOAuthClient:
    """Google sign-in: redirect URL, state round trip, code exchange and ID token checks."""

    def __init__(self, settings: Settings | None = None, transport: httpx.BaseTransport | None = None) -> None:
        self.settings = settings or get_settings()
        self.transport = transport

    def _require_configured(self) -> None:
        if not self.settings.google_configured:
            raise ServiceNotConfigured("Google sign-in is not configured")

    def new_state(self, now: datetime | None = None) -> tuple[str, str]:
        """Generate a CSRF nonce and the signed state sent to Google.

        The nonce goes in a short-lived cookie; the signed state comes back
        on the callback and must carry the same nonce.
        """
        nonce = secrets.token_urlsafe(32)
        issued_at = now or datetime.now(UTC)
        state = jwt.encode(
            {"nonce": nonce, "purpose": STATE_PURPOSE, "exp": issued_at + STATE_LIFETIME},
            self.settings.jwt_secret,
            algorithm=self.settings.jwt_algorithm,
        )
        return nonce, state

    def check_state(self, state: str | None, nonce: str | None) -> bool:
        if not state or not nonce:
            return False
        try:
            payload = jwt.decode(state, self.settings.jwt_secret, algorithms=[self.settings.jwt_algorithm])
        except JWTError:
            return False
        if payload.get("purpose") != STATE_PURPOSE:
            return False
        return secrets.compare_digest(str(payload.get("nonce", "")), nonce)

    def authorization_url(self, state: str) -> str:
        """Build the Google consent screen URL."""
        self._require_configured()
        params = {
            "client_id": self.settings.google_client_id,
            "redirect_uri": self.settings.google_callback_url,
            "response_type": "code",
            "scope": " ".join(OAUTH_SCOPES),
            "state": state,
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> GoogleProfile:
        """Exchange an authorization code for a verified Google profile."""
        self._require_configured()
        data = {
            "code": code,
            "client_id": self.settings.google_client_id,
            "client_secret": self.settings.google_client_secret,
            "redirect_uri": self.settings.google_callback_url,
            "grant_type": "authorization_code",
        }
        try:
            with httpx.Client(timeout=self.settings.google_timeout_seconds, transport=self.transport) as client:
                response = client.post(GOOGLE_TOKEN_URL, data=data)
        except httpx.HTTPError as e:
            logger.error(f"HTTP error calling Google token endpoint: {type(e).__name__}: {e}")
            raise ExternalServiceFailure("Google sign-in is unavailable") from e

        if response.status_code >= 500:
            logger.error(f"Google token endpoint failed: HTTP {response.status_code}")
            raise ExternalServiceFailure("Google sign-in is unavailable")
        if response.status_code != 200:
            logger.warning(f"Google rejected authorization code: HTTP {response.status_code}")
            raise InvalidExternalToken("Invalid Google authorization code")

        token = response.json().get("id_token")
        if not token:
            raise InvalidExternalToken("Google did not return an ID token")
        return self.verify_id_token(token)

    def verify_id_token(self, token: str) -> GoogleProfile:
        """Verify a Google ID token and extract the profile."""
        self._require_configured()
        try:
            idinfo = id_token.verify_oauth2_token(
                token,
                google_requests.Request(),
                self.settings.google_client_id,
            )
        except google_exceptions.TransportError as e:
            logger.error(f"Could not fetch Google certificates: {e}")
            raise ExternalServiceFailure("Google sign-in is unavailable") from e
        except (ValueError, google_exceptions.GoogleAuthError) as e:
            logger.info(f"Rejected Google ID token: {e}")
            raise InvalidExternalToken() from e

        if idinfo.get("iss") not in GOOGLE_ISSUERS:
            raise InvalidExternalToken()
        email = idinfo.get("email")
        if not email or not idinfo.get("email_verified", False):
            raise InvalidExternalToken("Google account has no verified email")

        return GoogleProfile(
            google_id=idinfo["sub"],
            email=email,
            display_name=idinfo.get("name"),
            avatar_url=idinfo.get("picture"),
        )
