#!/usr/bin/env python3
"""Grant a role to an existing admin user (idempotent).

Usage:
  python scripts/attach_admin_role.py --username alice
  python scripts/attach_admin_role.py --username bob --role sales
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.crm.bootstrap import init_resources  # noqa: E402
from app.crm.config import load_settings  # noqa: E402
from app.crm.db import session_scope  # noqa: E402
from app.crm.errors import CRMError  # noqa: E402
from app.crm.models import AdminUser  # noqa: E402


def attach_role(username: str, role: str) -> int:
    settings = load_settings()
    registry = init_resources(settings)
    try:
        with session_scope(registry.db().sessionmaker) as s:
            user = s.query(AdminUser).filter(AdminUser.username == username).one_or_none()
            if not user:
                print(f"User not found: {username}")
                return 1
            user_id = user.id

        engine = registry.policy().engine
        try:
            if not engine.add_grouping_policy(user_id, role):
                print(f"User already has role {role}: {username}")
                return 0
            engine.save_policy()
        except CRMError as e:
            print(f"Cannot attach role {role}: {e}")
            return 1
        print(f"Role {role} attached to {username}")
        return 0
    finally:
        registry.close_all(timeout=settings.init_timeout)


def main() -> None:
    load_dotenv()
    parser = argparse.ArgumentParser()
    parser.add_argument("--username", required=True, help="Admin username to grant the role to")
    parser.add_argument("--role", default=None, help="Role name (defaults to SUPER_ADMIN_ROLE)")
    args = parser.parse_args()
    role = args.role or load_settings().auth.super_admin.role
    sys.exit(attach_role(args.username, role))


if __name__ == "__main__":
    main()
