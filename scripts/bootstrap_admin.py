#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from sqlalchemy import inspect  # noqa: E402

from storefront.core.database import SessionLocal, engine  # noqa: E402
from storefront.core.errors import ValidationError  # noqa: E402
from storefront.services.users import upsert_admin_user  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or promote a storefront admin account.")
    parser.add_argument("--email", required=True, help="Admin email")
    parser.add_argument("--password", help="Admin password (required for a new account)")
    parser.add_argument("--name", required=True, help="Admin display name")
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    if not inspect(engine).has_table("users"):
        print("Table users not found. Run `alembic upgrade head` first.")
        return 1

    db = SessionLocal()
    try:
        admin, created = upsert_admin_user(
            db,
            email=args.email,
            name=args.name,
            password=args.password,
        )
    except ValidationError as exc:
        print(exc.message)
        return 1
    finally:
        db.close()

    action = "created" if created else "updated"
    print(f"Admin {action}: id={admin.id} email={admin.email}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
