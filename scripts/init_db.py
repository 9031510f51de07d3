"""
Seed the superadmin profile (idempotent).

With IDENTITY_BACKEND=local a matching credential is registered too; with
Firebase the auth user must already exist (its uid is backfilled on first login).
Does NOT overwrite an existing user's password.

Usage:
  python scripts/init_db.py
"""

import os
import sys
from pathlib import Path

from sqlalchemy.exc import IntegrityError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from scripts._db_utils import script_backends  # noqa: E402
from app.motobooster.identity import AuthError, LocalIdentityProvider  # noqa: E402
from app.motobooster.modules.accounts.models import USERS  # noqa: E402


def seed_only(*, database_url: str | None = None) -> None:
    username = (os.environ.get("ADMIN_USERNAME") or "admin").strip()
    email = (os.environ.get("ADMIN_EMAIL") or "admin@motobooster.local").strip().lower()
    password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    store, identity = script_backends(database_url)

    existing = store.query(USERS, "username", username, limit=1)
    if existing:
        profile_id = existing[0].id
        print(f"Profile already exists: {username} ({profile_id})")
    else:
        profile_id = store.create(
            USERS,
            {
                "username": username,
                "email": email,
                "fullName": "Administrator",
                "roles": ["superadmin"],
                "status": "active",
                "authUid": "",
                "lastLogin": None,
            },
        )
        print(f"Created profile: {username} ({profile_id})")

    if isinstance(identity, LocalIdentityProvider):
        try:
            identity.sign_in(email, password)
            print("Local credential already present.")
        except AuthError:
            try:
                uid = identity.register(email, password)
                store.update(USERS, profile_id, {"authUid": uid})
                print("Registered local credential.")
            except IntegrityError:
                # An existing credential with a different password is left alone.
                print("Local credential exists with a different password; not changed.")

    print(f"Admin username: {username}")
    print(f"Admin email: {email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
