from __future__ import annotations

import logging

from flask import current_app, g, request

from app.crm.errors import AuthRequired, CRMError, Forbidden
from app.crm.policy.authorize import Decision, authorize
from app.crm.policy.engine import PolicyEngine
from app.crm.policy.seeder import API_PREFIX

logger = logging.getLogger(__name__)


def policy_engine() -> PolicyEngine:
    return current_app.extensions["crm_registry"].policy().engine


def current_principal() -> str | None:
    user = getattr(g, "current_user", None)
    if not user or not user.is_active:
        return None
    return user.id


def enforce_request() -> None:
    """
    before_request hook: authorize every /api/v1/ call.

    Whitelisted routes pass without a principal; everything else needs a
    signed-in user holding a role that allows the method on the path.
    """
    if not request.path.startswith(API_PREFIX):
        return None

    principal = current_principal()
    try:
        engine: PolicyEngine | None = policy_engine()
    except CRMError as e:
        logger.error("Policy engine unavailable: %s", e)
        engine = None

    decision = authorize(engine, principal, request.method, request.path)
    g.authz_decision = decision
    if decision in (Decision.ALLOW, Decision.ANONYMOUS):
        return None
    if principal is None:
        raise AuthRequired("authentication required")
    logger.warning(
        "Forbidden: user_id=%s %s %s request_id=%s",
        principal,
        request.method,
        request.path,
        getattr(g, "request_id", None),
    )
    raise Forbidden(f"access denied: no permission for action '{request.method}' on resource '{request.path}'")
