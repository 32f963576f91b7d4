"""
Policy persistence through casbin-sqlalchemy-adapter.

The adapter's ``save_policy`` deletes and re-inserts every rule in one
session, so the store either reflects memory exactly or is left untouched.
"""
from __future__ import annotations

import functools
import logging

from casbin_sqlalchemy_adapter import Adapter
from sqlalchemy import Engine

from app.crm.models import Base, CasbinRule, CasbinRuleMixin

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=None)
def rule_model(table_name: str = "casbin_rule") -> type[CasbinRuleMixin]:
    """Mapped class for the policy table, optionally under a deployment-specific name."""
    if table_name == CasbinRule.__tablename__:
        return CasbinRule
    return type(f"CasbinRule_{table_name}", (CasbinRuleMixin, Base), {"__tablename__": table_name})


def build_adapter(engine: Engine, table_name: str = "casbin_rule") -> Adapter:
    model = rule_model(table_name)
    model.__table__.create(engine, checkfirst=True)  # type: ignore[attr-defined]
    logger.debug("Policy adapter bound to table %s", table_name)
    return Adapter(engine, db_class=model)
