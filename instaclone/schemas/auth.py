"""Authentication schemas."""

from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, StringConstraints
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema that reads and writes camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_password_bytes(value: str) -> str:
    # bcrypt only uses the first 72 bytes
    if len(value.encode("utf-8")) > 72:
        raise ValueError("Password must be at most 72 bytes")
    return value


NewPassword = Annotated[
    str,
    Field(min_length=8, max_length=128),
    AfterValidator(_check_password_bytes),
]


class UserRegister(CamelModel):
    """User registration request."""

    username: str = Field(..., min_length=3, max_length=30, pattern=r"^[A-Za-z0-9._]+$")
    email: EmailStr = Field(..., max_length=255)
    password: NewPassword
    full_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class UserLogin(CamelModel):
    """User login request."""

    username: str = Field(..., min_length=1, max_length=30)
    password: str = Field(..., min_length=1, max_length=128)


class VerifyOTPRequest(CamelModel):
    email: EmailStr = Field(..., max_length=255)
    otp: str = Field(..., pattern=r"^\d{6}$")


class ResendOTPRequest(CamelModel):
    email: EmailStr = Field(..., max_length=255)


class GoogleTokenRequest(CamelModel):
    """ID token obtained by a mobile client from Google Sign-In."""

    google_token: str = Field(..., min_length=1)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr = Field(..., max_length=255)


class ResetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=1, max_length=256)
    password: NewPassword


class UserResponse(CamelModel):
    """User information response."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    username: str
    email: str
    full_name: str
    profile_picture: str
    is_email_verified: bool


class AuthResponse(CamelModel):
    """Authentication response with token and user info."""

    message: str
    token: str
    token_type: str = "bearer"  # noqa: S105
    user: UserResponse


class RegisterResponse(CamelModel):
    message: str
    user_id: int
    email: str
    requires_verification: bool = True
    expires_in: int
    warning: str | None = None


class ResendOTPResponse(CamelModel):
    message: str
    email: str
    expires_in: int
    warning: str | None = None


class MessageResponse(CamelModel):
    message: str


class ErrorResponse(BaseModel):
    """Error envelope shared by every failing endpoint."""

    kind: str
    message: str
    details: dict | None = None
