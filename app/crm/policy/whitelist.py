from __future__ import annotations

from typing import NamedTuple


class PublicRoute(NamedTuple):
    method: str
    path: str


# Reachable without a principal; never enforced and never seeded.
PUBLIC_ROUTES: frozenset[PublicRoute] = frozenset(
    {
        PublicRoute("POST", "/api/v1/auth/login"),
        PublicRoute("POST", "/api/v1/auth/register"),
        PublicRoute("POST", "/api/v1/auth/refresh"),
        PublicRoute("POST", "/api/v1/auth/forgot-password"),
        PublicRoute("POST", "/api/v1/auth/reset-password"),
    }
)


def is_public_route(method: str, path: str) -> bool:
    return PublicRoute(method, path) in PUBLIC_ROUTES
