"""
Deploy step: bring the schema to head, then make sure the super-admin exists.

Refuses to run without an explicit DATABASE_URL, and against sqlite in
production. Safe to repeat; existing admin passwords are never touched.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _database_url() -> str:
    url = (os.environ.get("DATABASE_URL") or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set; refusing to migrate an implicit database.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and url.startswith("sqlite"):
        raise RuntimeError("sqlite is not a production database; point DATABASE_URL at Postgres.")
    return url


def _migrate(url: str) -> None:
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(ROOT / "migrations"))
    cfg.set_main_option("sqlalchemy.url", url)
    command.upgrade(cfg, "head")


def run_release() -> None:
    url = _database_url()

    print("[release] alembic upgrade head", flush=True)
    _migrate(url)

    print("[release] ensuring super admin", flush=True)
    from scripts import init_db

    if not init_db.seed_only():
        raise RuntimeError("super admin could not be ensured (see errors above)")
    print("[release] done", flush=True)


def main() -> None:
    try:
        run_release()
    except Exception as e:
        print(f"[release] failed: {e}", file=sys.stderr, flush=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
