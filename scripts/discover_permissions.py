#!/usr/bin/env python3
"""
Discover every protected API endpoint and record it in the policy store.

Each route under /api/v1/ (except the public whitelist) becomes a tuple
(_all_apis_, path, method). Administrators pick from that catalog when
granting permissions to roles, so nobody types API paths by hand.

Usage:
  python scripts/discover_permissions.py
"""

from __future__ import annotations

import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.crm import create_app  # noqa: E402
from app.crm.bootstrap import bootstrap  # noqa: E402
from app.crm.config import load_settings  # noqa: E402
from app.crm.logging_setup import configure_logging  # noqa: E402
from app.crm.policy.seeder import API_PREFIX, seed_api_policies  # noqa: E402
from app.crm.policy.whitelist import PUBLIC_ROUTES  # noqa: E402
from app.crm.route_catalog import list_routes  # noqa: E402


def run_discovery() -> int:
    load_dotenv()
    settings = load_settings()
    configure_logging(settings)
    print(f"Running tool in [{settings.env}] environment.", flush=True)

    registry, report, cleanup = bootstrap(settings)
    try:
        print("Application bootstrapped successfully.", flush=True)
        engine = registry.policy().engine

        # Same registration procedure as the server; nothing is served.
        app = create_app(settings, registry=registry, bootstrap_report=report)
        routes = list_routes(app)
        print(f"Loaded {len(PUBLIC_ROUTES)} public routes into the whitelist.", flush=True)
        print(f"Found {len(routes)} total routes. Filtering for API endpoints under {API_PREFIX}...", flush=True)

        result = seed_api_policies(engine, routes, echo=lambda msg: print(msg, flush=True))
        print(
            f"Discovered {result.discovered} API routes, skipped {result.skipped_public} public, "
            f"added {result.added} policies (saved={result.saved}).",
            flush=True,
        )
    finally:
        cleanup()
    return 0


def main() -> None:
    try:
        code = run_discovery()
    except Exception as e:
        print(f"API discovery failed: {e}", file=sys.stderr, flush=True)
        sys.exit(1)
    print("API discovery and seeding completed successfully!", flush=True)
    sys.exit(code)


if __name__ == "__main__":
    main()
