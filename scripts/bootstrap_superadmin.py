#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from fieldops.core.config import IS_DEV  # noqa: E402
from fieldops.core.database import SessionLocal, engine  # noqa: E402
from fieldops.services.bootstrap import ensure_users_table, upsert_superadmin  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or re-activate the platform superadmin.")
    parser.add_argument("--email", required=True, help="Superadmin email")
    parser.add_argument("--password", help="Superadmin password (required for a new account)")
    parser.add_argument("--name", help="Full name")
    parser.add_argument(
        "--reset-password",
        action="store_true",
        help="Replace the password of an existing account",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    try:
        ensure_users_table(engine)
    except RuntimeError as exc:
        print(str(exc))
        return 1

    db = SessionLocal()
    try:
        user, created = upsert_superadmin(
            db,
            email=args.email,
            password=args.password,
            full_name=args.name,
            reset_password=args.reset_password,
        )
    except ValueError as exc:
        print(str(exc))
        return 1
    finally:
        db.close()

    action = "created" if created else "updated"
    print(f"Superadmin {action}: id={user.id} email={user.email}")
    if IS_DEV and args.password:
        print(f"DEV summary -> Email: {user.email} | Password: {args.password}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
