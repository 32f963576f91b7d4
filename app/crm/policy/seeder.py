from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from app.crm.policy.engine import PolicyEngine
from app.crm.policy.model import ALL_APIS_SUBJECT
from app.crm.policy.whitelist import is_public_route
from app.crm.route_catalog import RouteEntry

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/"


@dataclass
class SeedResult:
    discovered: int = 0
    skipped_public: int = 0
    added: int = 0
    saved: bool = False


def seed_api_policies(
    engine: PolicyEngine,
    routes: Iterable[RouteEntry],
    *,
    prefix: str = API_PREFIX,
    echo: Callable[[str], None] | None = None,
) -> SeedResult:
    """
    Record one ``_all_apis_`` tuple per protected API route.

    Routes outside ``prefix`` and whitelisted routes are skipped; existing
    tuples are left alone, so running twice adds nothing the second time.
    """
    say = echo or (lambda _msg: None)
    result = SeedResult()

    for route in routes:
        if not route.path.startswith(prefix):
            continue
        result.discovered += 1
        if is_public_route(route.method, route.path):
            result.skipped_public += 1
            say(f"  -> Skipping whitelisted route: {{ {route.method}, {route.path} }}")
            continue
        if engine.has_policy(ALL_APIS_SUBJECT, route.path, route.method):
            continue
        if engine.add_policy(ALL_APIS_SUBJECT, route.path, route.method):
            result.added += 1
            logger.info("Added API resource policy %s %s", route.method, route.path)
            say(f"  -> Added policy for resource: {{ {ALL_APIS_SUBJECT}, {route.path}, {route.method} }}")

    if result.added:
        say(f"Added {result.added} new API policies. Saving to database...")
        engine.save_policy()
        result.saved = True
        say("Policies saved successfully.")
    else:
        say("No new API policies to add. Everything is up to date.")
    return result
