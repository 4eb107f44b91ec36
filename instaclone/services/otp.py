"""One-time email verification codes."""

import math
import secrets
from datetime import datetime, timedelta

from instaclone.errors import RateLimited
from instaclone.models.mixins import as_utc
from instaclone.models.user import User

OTP_MIN = 100000
OTP_MAX = 999999


def generate_code() -> str:
    """Draw a 6-digit code uniformly from 100000-999999."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


class OTPIssuer:
    """Issues, expires and rate-limits verification codes on a user record.

    Only one code is outstanding per user: issuing overwrites the previous
    code and expiry. Callers persist the user afterwards.
    """

    def __init__(self, expiry: timedelta, resend_cooldown: timedelta):
        self.expiry = expiry
        self.resend_cooldown = resend_cooldown

    @property
    def expires_in_seconds(self) -> int:
        return int(self.expiry.total_seconds())

    def issue(self, user: User, now: datetime) -> tuple[str, datetime]:
        code = generate_code()
        expires_at = now + self.expiry
        user.otp_code = code
        user.otp_expires_at = expires_at
        return code, expires_at

    def issued_at(self, user: User) -> datetime | None:
        if not user.has_pending_otp:
            return None
        return as_utc(user.otp_expires_at) - self.expiry

    def check_resend(self, user: User, now: datetime) -> None:
        """Raise RateLimited while the last code is younger than the cooldown."""
        issued_at = self.issued_at(user)
        if issued_at is None:
            return
        elapsed = (now - issued_at).total_seconds()
        cooldown = self.resend_cooldown.total_seconds()
        if elapsed < cooldown:
            raise RateLimited(max(1, math.ceil(cooldown - elapsed)))

    def is_expired(self, user: User, now: datetime) -> bool:
        # A code is still valid at the exact expiry instant
        return now > as_utc(user.otp_expires_at)

    def matches(self, user: User, code: str) -> bool:
        return user.otp_code == code

    def clear(self, user: User) -> None:
        user.otp_code = None
        user.otp_expires_at = None
