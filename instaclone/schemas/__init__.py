"""Pydantic schemas for API requests and responses."""

from instaclone.schemas.auth import (
    AuthResponse,
    ErrorResponse,
    ForgotPasswordRequest,
    GoogleTokenRequest,
    MessageResponse,
    RegisterResponse,
    ResendOTPRequest,
    ResendOTPResponse,
    ResetPasswordRequest,
    UserLogin,
    UserRegister,
    UserResponse,
    VerifyOTPRequest,
)

__all__ = [
    "UserRegister",
    "UserLogin",
    "VerifyOTPRequest",
    "ResendOTPRequest",
    "GoogleTokenRequest",
    "ForgotPasswordRequest",
    "ResetPasswordRequest",
    "UserResponse",
    "AuthResponse",
    "RegisterResponse",
    "ResendOTPResponse",
    "MessageResponse",
    "ErrorResponse",
]
