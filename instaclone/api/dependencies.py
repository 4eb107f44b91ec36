"""FastAPI dependencies for authentication and database."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from instaclone.config import get_settings
from instaclone.database import get_db
from instaclone.errors import InvalidToken
from instaclone.models.user import User
from instaclone.services.auth import AuthService
from instaclone.services.google_oauth import GoogleOAuthClient
from instaclone.services.mail import MailSender
from instaclone.services.tokens import TokenIssuer

security = HTTPBearer(auto_error=False)


def get_token_issuer() -> TokenIssuer:
    """Get token issuer configured with the process signing key."""
    return TokenIssuer.from_settings(get_settings())


def get_mail_sender() -> MailSender:
    """Get mail sender instance."""
    return MailSender()


def get_google_client() -> GoogleOAuthClient:
    """Get Google OAuth client instance."""
    return GoogleOAuthClient()


def get_auth_service(
    db: Annotated[Session, Depends(get_db)],
    tokens: Annotated[TokenIssuer, Depends(get_token_issuer)],
    mail: Annotated[MailSender, Depends(get_mail_sender)],
) -> AuthService:
    """Get auth service with dependencies."""
    return AuthService(db, tokens, mail)


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    tokens: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> User:
    """Get the current authenticated user from the bearer token."""
    if credentials is None:
        raise InvalidToken("Not authenticated")

    user_id = tokens.verify(credentials.credentials)

    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        raise InvalidToken("User not found")

    return user
