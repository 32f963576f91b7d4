from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from app.crm.errors import (
    DuplicateKey,
    InitTimeout,
    NotFound,
    ResourceCloseError,
    ResourceInitError,
    UnmetDependency,
)
from app.crm.resources.base import Deadline, Resource, ServiceKey

if TYPE_CHECKING:
    from app.crm.resources.cache import CacheResource
    from app.crm.resources.database import DatabaseResource
    from app.crm.resources.mailer import MailerResource
    from app.crm.resources.policy import PolicyResource

logger = logging.getLogger(__name__)


class ResourceRegistry:
    """
    Ordered set of managed resources.

    Registration happens once, single-threaded, during startup; afterwards the
    map is only read, so lookups take no lock.
    """

    def __init__(self) -> None:
        self._order: list[ServiceKey] = []
        self._resources: dict[ServiceKey, Resource] = {}

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, key: object) -> bool:
        return key in self._resources

    def keys(self) -> list[ServiceKey]:
        return list(self._order)

    def register(self, key: ServiceKey, resource: Resource) -> None:
        key = ServiceKey(key)
        if key in self._resources:
            raise DuplicateKey(f"resource {key.value} already registered")
        self._resources[key] = resource
        self._order.append(key)

    def _lookup(self, key: ServiceKey) -> Resource:
        try:
            return self._resources[ServiceKey(key)]
        except (KeyError, ValueError):
            raise NotFound(f"resource {getattr(key, 'value', key)} not registered") from None

    def get(self, key: ServiceKey) -> Resource:
        res = self._lookup(key)
        res.require_ready()
        return res

    # Typed accessors; callers never downcast.
    def db(self) -> "DatabaseResource":
        return self.get(ServiceKey.DB)  # type: ignore[return-value]

    def cache(self) -> "CacheResource":
        return self.get(ServiceKey.CACHE)  # type: ignore[return-value]

    def policy(self) -> "PolicyResource":
        return self.get(ServiceKey.POLICY)  # type: ignore[return-value]

    def mailer(self) -> "MailerResource":
        return self.get(ServiceKey.EMAIL)  # type: ignore[return-value]

    def init_all(self, timeout: float = 20.0) -> None:
        """
        Initialize every resource in registration order within ``timeout`` seconds.

        On failure, everything already initialized is closed in reverse order
        and the original error is raised.
        """
        if timeout <= 0:
            raise InitTimeout("init_all called with a non-positive deadline")
        deadline = Deadline(timeout)
        started: list[ServiceKey] = []

        for key in self._order:
            res = self._resources[key]
            try:
                deadline.check(f"initializing {key.value}")
                deps = self._resolve_dependencies(key, res)
                logger.info("Initializing resource %s (%s)", key.value, res.name)
                res.initialize(deadline, deps)
                if deadline.expired:
                    raise InitTimeout(f"deadline of {timeout:g}s exceeded while initializing {key.value}")
            except Exception as e:
                logger.error("Failed to initialize resource %s: %s; rolling back", key.value, e)
                # Release whatever the failing resource managed to open.
                self._close_quietly(key, res)
                for prev in reversed(started):
                    self._close_quietly(prev, self._resources[prev])
                if isinstance(e, (InitTimeout, UnmetDependency)):
                    raise
                raise ResourceInitError(key.value, e) from e
            started.append(key)

        logger.info("All %d resources initialized", len(started))

    def _resolve_dependencies(self, key: ServiceKey, res: Resource) -> dict[ServiceKey, Resource]:
        deps: dict[ServiceKey, Resource] = {}
        for dep_key in res.depends_on:
            dep = self._resources.get(dep_key)
            if dep is None or not dep.is_ready:
                raise UnmetDependency(
                    f"resource {key.value} depends on {dep_key.value}, which is not initialized"
                )
            deps[dep_key] = dep
        return deps

    @staticmethod
    def _close_quietly(key: ServiceKey, res: Resource) -> None:
        try:
            res.close()
        except Exception:
            logger.exception("Error closing resource %s during rollback", key.value)

    def close_all(self, timeout: float = 20.0) -> None:
        """Close resources in reverse registration order; every close is attempted."""
        deadline = Deadline(timeout)
        errors: list[tuple[str, BaseException]] = []
        for key in reversed(self._order):
            res = self._resources[key]
            if not res.is_ready:
                continue
            try:
                res.close(deadline)
                logger.info("Closed resource %s", key.value)
            except Exception as e:
                logger.error("Failed to close resource %s: %s", key.value, e)
                errors.append((key.value, e))
        if errors:
            raise ResourceCloseError(errors)

    def describe(self) -> dict[str, Any]:
        return {key.value: self._resources[key].describe() for key in self._order}

    @property
    def all_ready(self) -> bool:
        return bool(self._order) and all(self._resources[k].is_ready for k in self._order)
