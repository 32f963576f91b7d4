from __future__ import annotations

import logging
from contextlib import contextmanager
from collections.abc import Generator

import casbin
from casbin import persist
from casbin.model import Model
from sqlalchemy.exc import SQLAlchemyError

from app.crm.errors import EnforceError, PolicyPersistFailed, ReservedSubject
from app.crm.policy.model import ALL_APIS_SUBJECT, RBAC_MODEL_TEXT, REQUIRED_SECTIONS

logger = logging.getLogger(__name__)


def load_model(text: str = RBAC_MODEL_TEXT) -> Model:
    model = Model()
    try:
        model.load_model_from_text(text)
    except Exception as e:
        raise ValueError(f"invalid policy model: {e}") from e
    missing = [sec for sec in REQUIRED_SECTIONS if sec not in model.model]
    if missing:
        raise ValueError(f"invalid policy model: missing sections {', '.join(missing)}")
    return model


class PolicyEngine:
    """
    In-memory RBAC evaluator backed by a persistence adapter.

    Mutations change memory only (unless autosave is on); ``save_policy`` is
    the point where the store catches up. The underlying ``SyncedEnforcer``
    shares a read lock between queries and takes it exclusively for
    mutations, save and load, so enforcement never observes a half-applied
    load.
    """

    def __init__(self, adapter: persist.Adapter, *, autosave: bool = False, model_text: str = RBAC_MODEL_TEXT) -> None:
        self._adapter = adapter
        try:
            self._enforcer = casbin.SyncedEnforcer(load_model(model_text), adapter)
        except SQLAlchemyError as e:
            raise PolicyPersistFailed(f"failed to load policy: {e}") from e
        self._enforcer.enable_auto_save(autosave)

    # -- queries -----------------------------------------------------------

    def enforce(self, sub: str, obj: str, act: str) -> bool:
        try:
            return bool(self._enforcer.enforce(sub, obj, act))
        except Exception as e:
            raise EnforceError(f"enforce({sub!r}, {obj!r}, {act!r}) failed: {e}") from e

    def has_policy(self, sub: str, obj: str, act: str) -> bool:
        return self._enforcer.has_policy(sub, obj, act)

    def has_grouping_policy(self, user: str, role: str) -> bool:
        return self._enforcer.has_grouping_policy(user, role)

    def get_roles_for_user(self, user: str) -> list[str]:
        return list(self._enforcer.get_roles_for_user(user))

    def get_users_for_role(self, role: str) -> list[str]:
        return list(self._enforcer.get_users_for_role(role))

    def get_filtered_policy(self, subject: str) -> list[list[str]]:
        return [list(rule) for rule in self._enforcer.get_filtered_policy(0, subject)]

    def get_policy(self) -> list[list[str]]:
        return [list(rule) for rule in self._enforcer.get_policy()]

    def get_grouping_policy(self) -> list[list[str]]:
        return [list(rule) for rule in self._enforcer.get_grouping_policy()]

    # -- mutations ---------------------------------------------------------

    def add_policy(self, sub: str, obj: str, act: str) -> bool:
        with self._persisting("add policy"):
            return bool(self._enforcer.add_policy(sub, obj, act))

    def remove_policy(self, sub: str, obj: str, act: str) -> bool:
        with self._persisting("remove policy"):
            return bool(self._enforcer.remove_policy(sub, obj, act))

    def add_grouping_policy(self, user: str, role: str) -> bool:
        if role == ALL_APIS_SUBJECT:
            raise ReservedSubject(f"{ALL_APIS_SUBJECT} is reserved and cannot be granted")
        with self._persisting("add grouping policy"):
            return bool(self._enforcer.add_grouping_policy(user, role))

    def remove_grouping_policy(self, user: str, role: str) -> bool:
        with self._persisting("remove grouping policy"):
            return bool(self._enforcer.remove_grouping_policy(user, role))

    def save_policy(self) -> None:
        with self._persisting("save policy"):
            self._enforcer.save_policy()

    def load_policy(self) -> None:
        with self._persisting("load policy"):
            self._enforcer.load_policy()

    @staticmethod
    @contextmanager
    def _persisting(what: str) -> Generator[None, None, None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error("Policy store unreachable during %s: %s", what, e)
            raise PolicyPersistFailed(f"{what} failed: {e}") from e
