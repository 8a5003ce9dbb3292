"""
Create (or promote) an administrator account.

Usage:
    python scripts/seed_admin.py --email admin@example.com --username admin --password 'S3cret!pass'
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sohub.auth.security import get_password_hash
from sohub.db import Base, SessionLocal, engine
from sohub.models import choices
from sohub.models.models import User
from sohub.services.time_utils import utcnow


def seed_admin(email: str, username: str, password: str, role: str = choices.ROLE_ADMIN) -> User:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        email = email.strip().lower()
        user = db.query(User).filter(User.email == email).first()
        if user:
            user.role = role
            user.password_hash = get_password_hash(password)
            user.last_password_change = utcnow()
            print(f"Updated existing user {email} with role {role}")
        else:
            user = User(
                username=username,
                email=email,
                password_hash=get_password_hash(password),
                role=role,
                created_at=utcnow(),
            )
            db.add(user)
            print(f"Created {role} user {email}")
        db.commit()
        return user
    finally:
        db.close()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create or promote an admin user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--username", default="admin")
    parser.add_argument("--password", required=True)
    parser.add_argument("--role", default=choices.ROLE_ADMIN, choices=choices.ROLES)
    args = parser.parse_args(argv)
    seed_admin(args.email, args.username, args.password, args.role)


if __name__ == "__main__":
    main()
