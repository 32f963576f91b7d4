from __future__ import annotations

import enum
import time
from collections.abc import Mapping
from typing import Any

from app.crm.errors import InitTimeout, NotReady


class ServiceKey(str, enum.Enum):
    DB = "db"
    CACHE = "cache"
    POLICY = "casbin"
    EMAIL = "email"


class ResourceState(str, enum.Enum):
    REGISTERED = "registered"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


class Deadline:
    """Absolute point in (monotonic) time that lifecycle calls must finish by."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        self._expires_at = time.monotonic() + timeout

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    def check(self, what: str) -> None:
        if self.expired:
            raise InitTimeout(f"deadline of {self.timeout:g}s exceeded before {what}")


class Resource:
    """
    A managed external dependency with an explicit lifecycle.

    Subclasses implement ``_open`` / ``_close``; the state bookkeeping lives
    here so every variant follows the same state machine.
    """

    depends_on: tuple[ServiceKey, ...] = ()

    def __init__(self) -> None:
        self.state = ResourceState.REGISTERED

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def is_ready(self) -> bool:
        return self.state is ResourceState.READY

    def initialize(self, deadline: Deadline, deps: Mapping[ServiceKey, "Resource"] | None = None) -> None:
        self.state = ResourceState.INITIALIZING
        try:
            self._open(deadline, dict(deps or {}))
        except BaseException:
            self.state = ResourceState.FAILED
            raise
        self.state = ResourceState.READY

    def close(self, deadline: Deadline | None = None) -> None:
        if self.state in (ResourceState.REGISTERED, ResourceState.CLOSED):
            return
        self.state = ResourceState.CLOSING
        try:
            self._close(deadline)
        except BaseException:
            self.state = ResourceState.FAILED
            raise
        self.state = ResourceState.CLOSED

    def require_ready(self) -> None:
        if not self.is_ready:
            raise NotReady(f"{self.name} is {self.state.value}, not ready")

    def _open(self, deadline: Deadline, deps: dict[ServiceKey, "Resource"]) -> None:
        raise NotImplementedError

    def _close(self, deadline: Deadline | None) -> None:
        raise NotImplementedError

    def describe(self) -> dict[str, Any]:
        return {"name": self.name, "state": self.state.value}
