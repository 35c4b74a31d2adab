#!/usr/bin/env python3
"""Create the first admin account on a fresh deployment (one-shot)."""

import argparse
import logging
import os
import uuid
from typing import Optional

from credittrack.shared.models import User, ROLE_ADMIN
from credittrack.shared.repositories import UserRepository

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

DEFAULT_ADMIN_NAME = "System Admin"
DEFAULT_ADMIN_EMAIL = "admin@creditbureau.com"


def seed_admin(user_repo: UserRepository, name: str = DEFAULT_ADMIN_NAME, email: str = DEFAULT_ADMIN_EMAIL,
               user_id: Optional[str] = None) -> Optional[User]:
    """Saves an admin unless one already exists. Returns the new admin, or None."""
    existing = user_repo.list_users_by_role(ROLE_ADMIN)
    if existing:
        logger.info(f"Admin user already exists ({existing[0].user_id}), nothing to do")
        return None

    admin = User(user_id=user_id or str(uuid.uuid4()), name=name, email=email, role=ROLE_ADMIN)
    user_repo.save_user(admin)
    logger.info(f"Admin user {admin.user_id} created successfully")
    return admin


def main():
    parser = argparse.ArgumentParser(description="Create the first CreditTrack admin account.")
    parser.add_argument("--name", default=os.environ.get("ADMIN_NAME", DEFAULT_ADMIN_NAME))
    parser.add_argument("--email", default=os.environ.get("ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL))
    parser.add_argument("--user-id", default=os.environ.get("ADMIN_USER_ID"),
                        help="Cognito sub of the admin; a UUID is generated when omitted.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    seed_admin(UserRepository(), name=args.name, email=args.email, user_id=args.user_id)


if __name__ == "__main__":
    main()
