"""Error kinds raised by the authentication services.

Each error carries a stable ``kind`` and the HTTP status it maps to. The API
layer renders them as ``{"kind", "message", "details"}``.
"""

from typing import Any

from fastapi import status


class AuthError(Exception):
    """Base class for errors surfaced to API callers."""

    kind: str = "AuthError"
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class Conflict(AuthError):
    kind = "Conflict"
    default_message = "User already exists"


class NotFound(AuthError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"


class AlreadyVerified(AuthError):
    kind = "AlreadyVerified"
    default_message = "Email is already verified"


class NoPendingCode(AuthError):
    kind = "NoPendingCode"
    default_message = "No OTP found. Please request a new OTP."


class Expired(AuthError):
    kind = "Expired"
    status_code = status.HTTP_410_GONE
    default_message = "OTP has expired. Please request a new one."


class Mismatch(AuthError):
    kind = "Mismatch"
    default_message = "Invalid OTP"


class InvalidCredentials(AuthError):
    kind = "InvalidCredentials"
    default_message = "Invalid credentials"


class VerificationRequired(AuthError):
    kind = "VerificationRequired"
    default_message = "Please verify your email before logging in"


class RateLimited(AuthError):
    kind = "RateLimited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, wait_seconds: int):
        self.wait_seconds = wait_seconds
        super().__init__(
            f"Please wait {wait_seconds} seconds before requesting a new OTP",
            {"waitSeconds": wait_seconds},
        )


class ExternalServiceFailure(AuthError):
    kind = "ExternalServiceFailure"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "An external service is unavailable"


class ServiceNotConfigured(ExternalServiceFailure):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "This sign-in method is not configured"


class InvalidExternalToken(AuthError):
    kind = "InvalidExternalToken"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid Google token"


class InvalidToken(AuthError):
    kind = "InvalidToken"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid authentication credentials"


class TokenExpired(InvalidToken):
    kind = "TokenExpired"
    default_message = "Authentication token has expired"


class InvalidResetToken(AuthError):
    kind = "InvalidResetToken"
    default_message = "Invalid password reset token"
