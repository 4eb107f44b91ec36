"""Authentication flow: registration, email verification, login and Google sign-in."""

import hashlib
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from urllib.parse import urlencode

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from instaclone.config import Settings, get_settings
from instaclone.errors import (
    AlreadyVerified,
    Conflict,
    Expired,
    ExternalServiceFailure,
    InvalidCredentials,
    InvalidResetToken,
    Mismatch,
    NoPendingCode,
    NotFound,
    VerificationRequired,
)
from instaclone.models.mixins import as_utc, utcnow
from instaclone.models.user import User
from instaclone.services.google_oauth import GoogleProfile
from instaclone.services.mail import MailSender
from instaclone.services.otp import OTPIssuer
from instaclone.services.passwords import get_password_hash, verify_password
from instaclone.services.tokens import TokenIssuer
from instaclone.services.usernames import generate_unique_username

logger = logging.getLogger(__name__)

# Retries after losing a unique-key race against a concurrent Google sign-in
GOOGLE_MERGE_ATTEMPTS = 3


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass
class AuthResult:
    """An authenticated user and the bearer token issued for them."""

    user: User
    token: str


@dataclass
class RegistrationResult:
    user: User
    email_sent: bool
    expires_in_seconds: int


@dataclass
class ResendResult:
    user: User
    email_sent: bool
    expires_in_seconds: int


class AuthService:
    """
    Orchestrates the account state machine.

    Unregistered -> PendingVerification (register) -> Verified (verify_otp),
    or Unregistered -> Verified directly through Google sign-in.
    """

    def __init__(
        self,
        db: Session,
        tokens: TokenIssuer,
        mail: MailSender,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.tokens = tokens
        self.mail = mail
        self.settings = settings or get_settings()
        self.clock = clock
        self.otp = OTPIssuer(
            expiry=timedelta(minutes=self.settings.otp_expiry_minutes),
            resend_cooldown=timedelta(seconds=self.settings.otp_resend_cooldown_seconds),
        )

    def _get_by_email(self, email: str, for_update: bool = False) -> User | None:
        query = self.db.query(User).filter(User.email == normalize_email(email))
        if for_update:
            query = query.with_for_update()
        return query.first()

    def _deliver_otp(self, user: User, code: str) -> bool:
        """Send the code; delivery failure never undoes the state change."""
        try:
            self.mail.send_otp_email(user.email, user.full_name, code)
        except ExternalServiceFailure as e:
            logger.warning(f"Verification email to user {user.id} not delivered: {e.message}")
            return False
        return True

    def register(self, username: str, email: str, password: str, full_name: str) -> RegistrationResult:
        """Create an unverified user and email them a verification code."""
        username = username.strip()
        email = normalize_email(email)

        existing = (
            self.db.query(User)
            .filter(or_(User.username == username, User.email == email))
            .first()
        )
        if existing:
            field = "email" if existing.email == email else "username"
            raise Conflict(f"A user with this {field} already exists", {"field": field})

        user = User(
            username=username,
            email=email,
            password_hash=get_password_hash(password),
            full_name=full_name.strip(),
            is_email_verified=False,
        )
        code, _ = self.otp.issue(user, self.clock())
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration
            self.db.rollback()
            raise Conflict() from None
        self.db.refresh(user)
        logger.info(f"Registered user {user.id}, awaiting email verification")

        email_sent = self._deliver_otp(user, code)
        return RegistrationResult(user=user, email_sent=email_sent, expires_in_seconds=self.otp.expires_in_seconds)

    def verify_otp(self, email: str, code: str) -> AuthResult:
        """Check a verification code and sign the user in."""
        # Lock the row so the code compared is the one stored now
        user = self._get_by_email(email, for_update=True)
        if not user:
            raise NotFound()
        if user.is_email_verified:
            raise AlreadyVerified()
        if not user.has_pending_otp:
            raise NoPendingCode()

        now = self.clock()
        if self.otp.is_expired(user, now):
            raise Expired()
        if not self.otp.matches(user, code.strip()):
            raise Mismatch()

        self.otp.clear(user)
        user.is_email_verified = True
        user.last_login_at = now
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Verified email for user {user.id}")

        return AuthResult(user=user, token=self.tokens.issue(user.id, now))

    def resend_otp(self, email: str) -> ResendResult:
        """Replace the outstanding code with a new one, at most once per cooldown."""
        user = self._get_by_email(email, for_update=True)
        if not user:
            raise NotFound()
        if user.is_email_verified:
            raise AlreadyVerified()

        now = self.clock()
        self.otp.check_resend(user, now)
        code, _ = self.otp.issue(user, now)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Issued new verification code for user {user.id}")

        email_sent = self._deliver_otp(user, code)
        return ResendResult(user=user, email_sent=email_sent, expires_in_seconds=self.otp.expires_in_seconds)

    def login(self, username: str, password: str) -> AuthResult:
        """Authenticate by username and password."""
        user = self.db.query(User).filter(User.username == username.strip()).first()

        # Unknown, disabled and Google-only accounts fail exactly like a wrong password
        usable = user is not None and user.is_active and not user.is_federated_only
        password_hash = user.password_hash if usable else None
        if not verify_password(password, password_hash):
            raise InvalidCredentials()

        if not user.is_email_verified:
            raise VerificationRequired(details={"email": user.email, "requiresVerification": True})

        now = self.clock()
        user.last_login_at = now
        self.db.commit()
        self.db.refresh(user)

        return AuthResult(user=user, token=self.tokens.issue(user.id, now))

    def google_authenticate(self, profile: GoogleProfile) -> AuthResult:
        """Sign in with a verified Google identity, linking or creating the account."""
        for attempt in range(1, GOOGLE_MERGE_ATTEMPTS + 1):
            now = self.clock()
            user = self._merge_google_identity(profile, now)
            try:
                self.db.commit()
            except IntegrityError:
                # Another request created or linked this identity first; re-read it
                self.db.rollback()
                logger.warning(f"Google sign-in race for {profile.google_id}, attempt {attempt}")
                continue
            self.db.refresh(user)
            return AuthResult(user=user, token=self.tokens.issue(user.id, now))

        raise Conflict("Could not complete Google sign-in, please try again")

    def _merge_google_identity(self, profile: GoogleProfile, now: datetime) -> User:
        email = normalize_email(profile.email)

        user = self.db.query(User).filter(User.google_id == profile.google_id).first()
        if user:
            if not user.is_active:
                raise InvalidCredentials()
            user.last_login_at = now
            if not user.profile_picture and profile.avatar_url:
                user.profile_picture = profile.avatar_url
            return user

        user = self.db.query(User).filter(User.email == email).first()
        if user:
            if not user.is_active:
                raise InvalidCredentials()
            if user.google_id is not None:
                raise Conflict(
                    "This email is linked to a different Google account",
                    {"field": "email"},
                )
            user.google_id = profile.google_id
            # Google has already verified the address
            user.is_email_verified = True
            self.otp.clear(user)
            if not user.profile_picture and profile.avatar_url:
                user.profile_picture = profile.avatar_url
            user.last_login_at = now
            logger.info(f"Linked Google account to existing user {user.id}")
            return user

        user = User(
            google_id=profile.google_id,
            username=generate_unique_username(self.db, profile.display_name, email),
            email=email,
            full_name=profile.display_name or email.split("@", 1)[0],
            profile_picture=profile.avatar_url or "",
            is_email_verified=True,
            last_login_at=now,
        )
        self.db.add(user)
        logger.info(f"Creating user {user.username} from Google sign-in")
        return user

    def request_password_reset(self, email: str) -> None:
        """Email a reset link if the account exists. Silent otherwise."""
        user = self._get_by_email(email, for_update=True)
        if not user or not user.is_active:
            logger.info("Password reset requested for unknown or disabled account")
            return

        token = secrets.token_urlsafe(32)
        user.password_reset_token_hash = hash_reset_token(token)
        user.password_reset_expires_at = self.clock() + timedelta(minutes=self.settings.password_reset_expiry_minutes)
        self.db.commit()

        reset_link = f"{self.settings.client_url}/reset-password?{urlencode({'token': token})}"
        try:
            self.mail.send_password_reset_email(user.email, user.full_name, reset_link)
        except ExternalServiceFailure as e:
            logger.warning(f"Password reset email to user {user.id} not delivered: {e.message}")

    def reset_password(self, token: str, new_password: str) -> None:
        """Replace the password of the account owning a reset token."""
        user = (
            self.db.query(User)
            .filter(User.password_reset_token_hash == hash_reset_token(token))
            .with_for_update()
            .first()
        )
        if not user:
            raise InvalidResetToken()

        expired = self.clock() > as_utc(user.password_reset_expires_at)
        user.password_reset_token_hash = None
        user.password_reset_expires_at = None
        if expired:
            self.db.commit()
            raise Expired("Password reset link has expired")

        user.password_hash = get_password_hash(new_password)
        self.db.commit()
        logger.info(f"Password reset for user {user.id}")
