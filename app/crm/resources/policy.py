from __future__ import annotations

import logging

from app.crm.config import RbacSettings
from app.crm.policy.adapter import build_adapter
from app.crm.policy.engine import PolicyEngine
from app.crm.resources.base import Deadline, Resource, ServiceKey
from app.crm.resources.database import DatabaseResource

logger = logging.getLogger(__name__)


class PolicyResource(Resource):
    """Policy engine persisted through the database resource's engine."""

    depends_on = (ServiceKey.DB,)

    def __init__(self, settings: RbacSettings) -> None:
        super().__init__()
        self.settings = settings
        self._engine: PolicyEngine | None = None

    @property
    def engine(self) -> PolicyEngine:
        self.require_ready()
        assert self._engine is not None
        return self._engine

    def _open(self, deadline: Deadline, deps: dict[ServiceKey, Resource]) -> None:
        db = deps[ServiceKey.DB]
        assert isinstance(db, DatabaseResource)
        adapter = build_adapter(db.engine, table_name=self.settings.table_name)
        self._engine = PolicyEngine(adapter, autosave=self.settings.autosave)
        logger.info(
            "Policy engine initialized (table=%s, %d policies, %d groupings)",
            self.settings.table_name,
            len(self._engine.get_policy()),
            len(self._engine.get_grouping_policy()),
        )

    def _close(self, deadline: Deadline | None) -> None:
        self._engine = None
