"""SQLAlchemy models."""

from instaclone.models.user import User

__all__ = [
    "User",
]
