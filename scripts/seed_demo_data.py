#!/usr/bin/env python3
"""Seed demo accounts for local development.

Creates a verified password account and a pending account that still needs
email verification, so both login paths can be tried from the frontend.

Usage:
    DATABASE_URL=sqlite:///./instaclone.db python scripts/seed_demo_data.py
"""

import os
import sys
from datetime import UTC, datetime, timedelta

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from instaclone.database import Base
from instaclone.models import User
from instaclone.services.otp import generate_code
from instaclone.services.passwords import get_password_hash

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./instaclone.db")

DEMO_PASSWORD = "demopass123"
DEMO_ACCOUNTS = [
    {
        "username": "demo",
        "email": "demo@example.com",
        "full_name": "Demo User",
        "verified": True,
    },
    {
        "username": "pending",
        "email": "pending@example.com",
        "full_name": "Pending User",
        "verified": False,
    },
]


def seed_demo_data():
    """Create or recreate the demo accounts."""
    engine = create_engine(DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine)
    session = Session()

    try:
        now = datetime.now(UTC)
        for account in DEMO_ACCOUNTS:
            existing_user = session.query(User).filter_by(email=account["email"]).first()
            if existing_user:
                print(f"Removing existing demo account {account['username']}...")
                session.delete(existing_user)
                session.flush()

            print(f"Creating demo account {account['username']}...")
            user = User(
                username=account["username"],
                email=account["email"],
                full_name=account["full_name"],
                password_hash=get_password_hash(DEMO_PASSWORD),
                is_email_verified=account["verified"],
            )
            if account["verified"]:
                user.last_login_at = now
            else:
                user.otp_code = generate_code()
                user.otp_expires_at = now + timedelta(minutes=10)
                print(f"  verification code: {user.otp_code}")
            session.add(user)

        session.commit()
        print("Demo accounts seeded successfully!")

    except Exception as e:
        session.rollback()
        print(f"Error seeding demo data: {e}")
        raise
    finally:
        session.close()


if __name__ == "__main__":
    seed_demo_data()
