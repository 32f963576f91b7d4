from __future__ import annotations

import enum
import logging

from app.crm.errors import EnforceError
from app.crm.policy.engine import PolicyEngine
from app.crm.policy.whitelist import is_public_route

logger = logging.getLogger(__name__)


class Decision(str, enum.Enum):
    ALLOW = "allow"
    DENY = "deny"
    ANONYMOUS = "anonymous"


def authorize(engine: PolicyEngine | None, principal: str | None, method: str, path: str) -> Decision:
    """
    Decide whether ``principal`` (a user id, or None) may call ``method path``.

    Public routes short-circuit to ANONYMOUS before the engine is consulted.
    Never raises: evaluation errors are logged and count as a deny.
    """
    if is_public_route(method, path):
        return Decision.ANONYMOUS
    if not principal or engine is None:
        return Decision.DENY

    try:
        roles = engine.get_roles_for_user(principal)
    except Exception:
        logger.exception("Role lookup failed for user_id=%s", principal)
        return Decision.DENY

    for role in roles:
        try:
            if engine.enforce(role, path, method):
                return Decision.ALLOW
        except EnforceError as e:
            logger.error("Policy evaluation error (treated as deny): %s", e)
    return Decision.DENY
