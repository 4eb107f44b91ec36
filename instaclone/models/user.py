"""User model."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String

from instaclone.database import Base
from instaclone.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """User account for password and Google sign-in."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "password_hash IS NOT NULL OR google_id IS NOT NULL",
            name="ck_users_has_credential",
        ),
        CheckConstraint(
            "(otp_code IS NULL AND otp_expires_at IS NULL)"
            " OR (otp_code IS NOT NULL AND otp_expires_at IS NOT NULL)",
            name="ck_users_otp_pair",
        ),
        CheckConstraint(
            "(password_reset_token_hash IS NULL AND password_reset_expires_at IS NULL)"
            " OR (password_reset_token_hash IS NOT NULL AND password_reset_expires_at IS NOT NULL)",
            name="ck_users_password_reset_pair",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(30), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=False)
    bio = Column(String(150), nullable=True)
    profile_picture = Column(String(512), nullable=False, default="")

    google_id = Column(String(255), unique=True, nullable=True, index=True)

    # Email verification
    is_email_verified = Column(Boolean, nullable=False, default=False)
    otp_code = Column(String(6), nullable=True)
    otp_expires_at = Column(DateTime(timezone=True), nullable=True)

    # Password reset
    password_reset_token_hash = Column(String(64), nullable=True, index=True)
    password_reset_expires_at = Column(DateTime(timezone=True), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def has_pending_otp(self) -> bool:
        return self.otp_code is not None and self.otp_expires_at is not None

    @property
    def is_federated_only(self) -> bool:
        """True when the account can only sign in through Google."""
        return self.password_hash is None
