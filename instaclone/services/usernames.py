"""Unique username generation for Google sign-ups."""

import re

from sqlalchemy.orm import Session

from instaclone.models.user import User

MAX_BASE_LENGTH = 15
FALLBACK_BASE = "user"
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def username_base(display_name: str | None, email: str | None = None) -> str:
    """Derive a lowercase alphanumeric base of at most 15 characters."""
    sources = [display_name, email.split("@", 1)[0] if email else None]
    for source in sources:
        if not source:
            continue
        base = _NON_ALNUM.sub("", source.lower())[:MAX_BASE_LENGTH]
        if base:
            return base
    return FALLBACK_BASE


def username_exists(db: Session, username: str) -> bool:
    return db.query(User.id).filter(User.username == username).first() is not None


def generate_unique_username(
    db: Session,
    display_name: str | None,
    email: str | None = None,
    max_attempts: int = 10000,
) -> str:
    """
    Return a free username derived from a display name or email.

    Tries the bare base, then base1, base2, ... The unique constraint on
    users.username still decides races with concurrent sign-ups.
    """
    base = username_base(display_name, email)
    candidate = base
    for counter in range(1, max_attempts + 1):
        if not username_exists(db, candidate):
            return candidate
        candidate = f"{base}{counter}"
    raise RuntimeError(f"No free username found for base {base!r} after {max_attempts} attempts")
