#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy import inspect

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT))

from ahaar.core.config import DATABASE_URL  # noqa: E402
from ahaar.core.database import Base, SessionLocal, engine  # noqa: E402
from ahaar.core.errors import ValidationError  # noqa: E402
from ahaar.services.accounts import ensure_super_admin  # noqa: E402
from ahaar.services.validation import validate_email, validate_mobile, validate_password  # noqa: E402
import ahaar.models  # noqa: E402,F401


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the platform super admin account.")
    parser.add_argument("--email", required=True, help="Super admin email")
    parser.add_argument("--password", required=True, help="Super admin password")
    parser.add_argument("--name", default="Super Admin", help="Display name")
    parser.add_argument("--mobile", required=True, help="11 digit mobile number")
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    try:
        email = validate_email(args.email)
        password = validate_password(args.password)
        mobile = validate_mobile(args.mobile)
    except ValidationError as exc:
        print(exc.message)
        return 1

    if DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    elif not inspect(engine).has_table("users"):
        print("users table missing. Run `alembic upgrade head` first.")
        return 1

    db = SessionLocal()
    try:
        user, created = ensure_super_admin(db, email=email, password=password, name=args.name, mobile=mobile)
    except RuntimeError as exc:
        print(str(exc))
        return 1
    finally:
        db.close()

    action = "created" if created else "already present"
    print(f"Super admin {action}: user_id={user.user_id} email={user.email}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
