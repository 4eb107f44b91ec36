"""Authentication API endpoints."""

import logging
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from instaclone.api.dependencies import get_auth_service, get_current_user, get_google_client
from instaclone.config import get_settings
from instaclone.errors import AuthError
from instaclone.models.user import User
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
from instaclone.services.auth import AuthResult, AuthService
from instaclone.services.google_oauth import STATE_LIFETIME, GoogleOAuthClient

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
    responses={
        code: {"model": ErrorResponse}
        for code in (400, 401, 404, 410, 422, 429, 502, 503)
    },
)
settings = get_settings()

OAUTH_STATE_COOKIE = "google_oauth_nonce"
OAUTH_COOKIE_PATH = "/api/auth/google"
EMAIL_NOT_SENT_WARNING = "Failed to send OTP email. Please use resend OTP."


def _auth_response(message: str, result: AuthResult) -> AuthResponse:
    return AuthResponse(
        message=message,
        token=result.token,
        user=UserResponse.model_validate(result.user),
    )


def _frontend_redirect(path: str, **params: str) -> RedirectResponse:
    response = RedirectResponse(
        f"{settings.client_url}{path}?{urlencode(params)}",
        status_code=status.HTTP_302_FOUND,
    )
    response.delete_cookie(OAUTH_STATE_COOKIE, path=OAUTH_COOKIE_PATH)
    return response


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserRegister,
    auth: Annotated[AuthService, Depends(get_auth_service)],
):
    """Register a new user and send a verification code."""
    result = auth.register(
        username=user_data.username,
        email=user_data.email,
        password=user_data.password,
        full_name=user_data.full_name,
    )

    if result.email_sent:
        message = "User created successfully. Please verify your email with the OTP sent to your email address."
    else:
        message = "User created but failed to send verification email. Please use resend OTP."

    return RegisterResponse(
        message=message,
        user_id=result.user.id,
        email=result.user.email,
        expires_in=result.expires_in_seconds,
        warning=None if result.email_sent else EMAIL_NOT_SENT_WARNING,
    )


@router.post("/login", response_model=AuthResponse)
def login(
    credentials: UserLogin,
    auth: Annotated[AuthService, Depends(get_auth_service)],
):
    """Login with username and password."""
    result = auth.login(credentials.username, credentials.password)
    return _auth_response("Login successful", result)


@router.post("/verify-otp", response_model=AuthResponse)
def verify_otp(
    body: VerifyOTPRequest,
    auth: Annotated[AuthService, Depends(get_auth_service)],
):
    """Verify the emailed code and sign in."""
    result = auth.verify_otp(body.email, body.otp)
    return _auth_response("Email verified successfully", result)


@router.post("/resend-otp", response_model=ResendOTPResponse)
def resend_otp(
    body: ResendOTPRequest,
    auth: Annotated[AuthService, Depends(get_auth_service)],
):
    """Issue and send a new verification code."""
    result = auth.resend_otp(body.email)
    return ResendOTPResponse(
        message="New OTP sent successfully to your email" if result.email_sent else "New OTP issued",
        email=result.user.email,
        expires_in=result.expires_in_seconds,
        warning=None if result.email_sent else EMAIL_NOT_SENT_WARNING,
    )


@router.get("/google")
def google_login(
    google: Annotated[GoogleOAuthClient, Depends(get_google_client)],
):
    """Redirect to the Google consent screen."""
    nonce, state = google.new_state()
    response = RedirectResponse(google.authorization_url(state), status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        key=OAUTH_STATE_COOKIE,
        value=nonce,
        max_age=int(STATE_LIFETIME.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path=OAUTH_COOKIE_PATH,
    )
    return response


@router.get("/google/callback")
def google_callback(
    request: Request,
    auth: Annotated[AuthService, Depends(get_auth_service)],
    google: Annotated[GoogleOAuthClient, Depends(get_google_client)],
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
):
    """Finish the Google redirect flow and hand the token to the frontend."""
    if error or not code:
        return _frontend_redirect("/login", error="auth_cancelled")

    if not google.check_state(state, request.cookies.get(OAUTH_STATE_COOKIE)):
        logger.warning("Google callback with missing or mismatched state")
        return _frontend_redirect("/login", error="auth_failed")

    try:
        profile = google.exchange_code(code)
        result = auth.google_authenticate(profile)
    except AuthError as e:
        logger.warning(f"Google callback failed: {e.kind}: {e.message}")
        return _frontend_redirect("/login", error="auth_failed")
    except Exception:
        logger.exception("Unexpected error in Google callback")
        return _frontend_redirect("/login", error="auth_failed")

    return _frontend_redirect("/auth/success", token=result.token)


@router.post("/google/verify", response_model=AuthResponse)
def google_verify(
    body: GoogleTokenRequest,
    auth: Annotated[AuthService, Depends(get_auth_service)],
    google: Annotated[GoogleOAuthClient, Depends(get_google_client)],
):
    """Sign in with a Google ID token (mobile apps)."""
    profile = google.verify_id_token(body.google_token)
    result = auth.google_authenticate(profile)
    return _auth_response("Google authentication successful", result)


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    body: ForgotPasswordRequest,
    auth: Annotated[AuthService, Depends(get_auth_service)],
):
    """Email a password reset link. The response does not reveal whether the account exists."""
    auth.request_password_reset(body.email)
    return MessageResponse(message="If an account exists for this email, a password reset link has been sent")


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    body: ResetPasswordRequest,
    auth: Annotated[AuthService, Depends(get_auth_service)],
):
    """Set a new password using an emailed reset token."""
    auth.reset_password(body.token, body.password)
    return MessageResponse(message="Password has been reset successfully")


@router.get("/me", response_model=UserResponse)
def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Get current user information."""
    return current_user


@router.post("/logout", response_model=MessageResponse)
def logout(
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Logout (client should discard token)."""
    return MessageResponse(message="Logged out successfully")
