from __future__ import annotations

import re
from typing import NamedTuple

from flask import Flask

# Flask adds these to every rule on its own; they are not separate endpoints.
_IMPLICIT_METHODS = frozenset({"HEAD", "OPTIONS"})
_RULE_VARIABLE = re.compile(r"<(?:([^<>:(]+)(?:\([^<>]*\))?:)?([^<>:]+)>")


class RouteEntry(NamedTuple):
    method: str
    path: str
    endpoint: str


def _template_variable(m: re.Match[str]) -> str:
    # The path converter spans segments; keyMatch2 only matches that as a trailing /*.
    if m.group(1) == "path":
        return "*"
    return ":" + m.group(2)


def to_path_template(rule: str) -> str:
    """
    Rewrite a Flask rule into the keyMatch2 form used by stored policies.

    >>> to_path_template("/api/v1/customers/<int:customer_id>/notes")
    '/api/v1/customers/:customer_id/notes'
    >>> to_path_template("/api/v1/files/<path:name>")
    '/api/v1/files/*'
    """
    return _RULE_VARIABLE.sub(_template_variable, rule)


def list_routes(app: Flask) -> list[RouteEntry]:
    """Every (method, path template, endpoint) registered on ``app``, in a stable order."""
    entries: list[RouteEntry] = []
    for rule in app.url_map.iter_rules():
        path = to_path_template(rule.rule)
        for method in sorted((rule.methods or set()) - _IMPLICIT_METHODS):
            entries.append(RouteEntry(method, path, rule.endpoint))
    entries.sort(key=lambda e: (e.path, e.method))
    return entries
