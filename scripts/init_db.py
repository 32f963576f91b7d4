"""
Create missing tables (development convenience) and seed the super-admin
account in an idempotent way. Does NOT overwrite an existing admin's password.

Usage:
  python scripts/init_db.py
"""

import sys
from pathlib import Path

from dotenv import load_dotenv

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.crm.bootstrap import ensure_super_admin, init_resources  # noqa: E402
from app.crm.config import Settings, check_production_guardrails, load_settings  # noqa: E402
from app.crm.logging_setup import configure_logging  # noqa: E402
from app.crm.models import Base  # noqa: E402


def seed_only(settings: Settings | None = None, *, create_tables: bool = False) -> bool:
    settings = settings or load_settings()
    check_production_guardrails(settings)
    registry = init_resources(settings)
    try:
        if create_tables:
            Base.metadata.create_all(bind=registry.db().engine)
        report = ensure_super_admin(registry, settings)
    finally:
        registry.close_all(timeout=settings.init_timeout)

    if not report.super_admin_ok:
        print("Super admin bootstrap failed:", flush=True)
        for err in report.errors:
            print(f"  - {err}", flush=True)
        return False

    print("Initialized database (seed_only).", flush=True)
    print(f"Admin username: {settings.auth.super_admin.username}", flush=True)
    print(f"Admin id: {report.super_admin_id} (created={report.created})", flush=True)
    print("Admin password: (from SUPER_ADMIN_PASSWORD)", flush=True)
    return True


def main() -> None:
    load_dotenv()
    settings = load_settings()
    configure_logging(settings)
    ok = seed_only(settings, create_tables=not settings.is_production)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
