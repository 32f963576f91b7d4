"""
Startup wiring: build the resource registry, bring it up, and make sure a
super-admin account exists.

The web app and the operator scripts go through the same ``bootstrap()`` so
both talk to the policy store through the same adapter.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from werkzeug.security import generate_password_hash

from app.crm.config import Settings, check_production_guardrails
from app.crm.db import session_scope
from app.crm.models import AdminUser
from app.crm.policy.engine import PolicyEngine
from app.crm.policy.model import ALL_APIS_SUBJECT
from app.crm.resources import ResourceRegistry, ServiceKey
from app.crm.resources.cache import CacheResource
from app.crm.resources.database import DatabaseResource
from app.crm.resources.mailer import MailerResource
from app.crm.resources.policy import PolicyResource

logger = logging.getLogger(__name__)

# Self-service endpoints every signed-in user gets through the default role.
DEFAULT_ROLE_PERMISSIONS = (
    ("/api/v1/auth/profile", "GET"),
    ("/api/v1/auth/profile", "PUT"),
    ("/api/v1/auth/password", "PUT"),
    ("/api/v1/auth/logout", "POST"),
)


@dataclass
class BootstrapReport:
    """Outcome of the super-admin bootstrap, surfaced on /readyz."""

    super_admin_ok: bool = False
    super_admin_id: str | None = None
    created: bool = False
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "super_admin_ok": self.super_admin_ok,
            "super_admin_id": self.super_admin_id,
            "created": self.created,
            "errors": list(self.errors),
        }


def build_registry(settings: Settings) -> ResourceRegistry:
    registry = ResourceRegistry()
    registry.register(
        ServiceKey.DB,
        DatabaseResource(settings.database, echo_checkouts=not settings.is_production),
    )
    registry.register(ServiceKey.CACHE, CacheResource(settings.cache))
    registry.register(ServiceKey.POLICY, PolicyResource(settings.auth.rbac))
    registry.register(ServiceKey.EMAIL, MailerResource(settings.email))
    return registry


def init_resources(settings: Settings, registry: ResourceRegistry | None = None) -> ResourceRegistry:
    registry = registry or build_registry(settings)
    logger.info("Starting to initialize all resources...")
    registry.init_all(timeout=settings.init_timeout)
    return registry


def _ensure_policies(engine: PolicyEngine, subject: str, wanted: list[tuple[str, str]]) -> int:
    added = 0
    for path, method in wanted:
        if engine.add_policy(subject, path, method):
            added += 1
            logger.info("Granted %s %s to role %s", method, path, subject)
    return added


def sync_default_role(engine: PolicyEngine, default_role: str) -> int:
    if not default_role:
        logger.debug("Default role not configured; skipping default permissions.")
        return 0
    added = _ensure_policies(engine, default_role, list(DEFAULT_ROLE_PERMISSIONS))
    if added:
        engine.save_policy()
    else:
        logger.info("Default role permissions are already up to date.")
    return added


def sync_super_admin_permissions(engine: PolicyEngine, role: str) -> int:
    """Give ``role`` every endpoint recorded under the ``_all_apis_`` catalog."""
    catalog = engine.get_filtered_policy(ALL_APIS_SUBJECT)
    if not catalog:
        logger.warning("No API resources found under %s. Has the discover tool been run?", ALL_APIS_SUBJECT)
        return 0
    added = _ensure_policies(engine, role, [(rule[1], rule[2]) for rule in catalog])
    if added:
        engine.save_policy()
    else:
        logger.info("Super admin role permissions are already up to date.")
    return added


def ensure_super_admin(registry: ResourceRegistry, settings: Settings) -> BootstrapReport:
    """
    Idempotently create the super-admin user and grant it the super-admin role.

    Errors are logged and recorded on the report instead of raised; the rest
    of the system stays usable without the account.
    """
    report = BootstrapReport()
    admin = settings.auth.super_admin

    try:
        db = registry.db()
        with session_scope(db.sessionmaker) as s:
            user = s.query(AdminUser).filter(AdminUser.username == admin.username).one_or_none()
            if user is None:
                user = AdminUser(
                    username=admin.username,
                    password_hash=generate_password_hash(
                        admin.password, method=settings.auth.password_hash_method
                    ),
                    email=admin.email,
                    real_name="SuperAdmin",
                    is_active=True,
                )
                s.add(user)
                s.flush()
                report.created = True
                logger.info("Super admin account created: %s", admin.username)
            else:
                logger.info("Super admin account already exists: %s", admin.username)
            report.super_admin_id = user.id
    except Exception as e:
        logger.warning("Failed to initialize admin user: %s", e)
        report.errors.append(f"admin user: {e}")
        return report

    try:
        engine = registry.policy().engine
        if engine.add_grouping_policy(report.super_admin_id, admin.role):
            logger.info("Granted role %s to super admin", admin.role)
            engine.save_policy()
        report.super_admin_ok = True
    except Exception as e:
        logger.warning("Failed to grant super admin role: %s", e)
        report.errors.append(f"grant role: {e}")
        return report

    for label, step in (
        ("default role", lambda: sync_default_role(engine, settings.auth.default_role)),
        ("super admin permissions", lambda: sync_super_admin_permissions(engine, admin.role)),
    ):
        try:
            step()
        except Exception as e:
            logger.warning("Failed to sync %s: %s", label, e)
            report.errors.append(f"{label}: {e}")

    return report


def bootstrap(settings: Settings) -> tuple[ResourceRegistry, BootstrapReport, Callable[[], None]]:
    """
    Bring the runtime up. Returns the registry, the admin bootstrap report and
    a cleanup callable that closes every resource.
    """
    check_production_guardrails(settings)
    logger.info("Bootstrap process started (env=%s)", settings.env)
    registry = init_resources(settings)
    report = ensure_super_admin(registry, settings)

    def cleanup() -> None:
        logger.info("Application is shutting down...")
        try:
            registry.close_all(timeout=settings.init_timeout)
        except Exception:
            logger.exception("Failed to close resources gracefully")
        else:
            logger.info("All resources cleaned up successfully")

    logger.info("Bootstrap process completed")
    return registry, report, cleanup
