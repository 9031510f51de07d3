#!/usr/bin/env python3
"""Create a user profile (and a local credential when IDENTITY_BACKEND=local).

Usage:
  python scripts/add_user.py --username juan --email juan@example.com --role employee --password s3cret
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from scripts._db_utils import script_backends  # noqa: E402
from app.motobooster.identity import LocalIdentityProvider  # noqa: E402
from app.motobooster.modules.accounts.models import USERS  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--full-name", default="")
    parser.add_argument("--role", action="append", dest="roles", help="Repeatable; defaults to employee")
    parser.add_argument("--password", help="Only used with the local identity backend")
    args = parser.parse_args()

    store, identity = script_backends()
    if store.query(USERS, "username", args.username, limit=1):
        print(f"Username already taken: {args.username}")
        return

    auth_uid = ""
    if isinstance(identity, LocalIdentityProvider):
        if not args.password:
            print("--password is required with IDENTITY_BACKEND=local")
            sys.exit(2)
        auth_uid = identity.register(args.email, args.password)

    profile_id = store.create(
        USERS,
        {
            "username": args.username,
            "email": args.email.strip().lower(),
            "fullName": args.full_name,
            "roles": args.roles or ["employee"],
            "status": "active",
            "authUid": auth_uid,
            "lastLogin": None,
        },
    )
    print(f"Created user {args.username} ({profile_id})")


if __name__ == "__main__":
    main()
