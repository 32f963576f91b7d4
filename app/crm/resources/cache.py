from __future__ import annotations

import logging

import redis

from app.crm.config import CacheSettings
from app.crm.resources.base import Deadline, Resource, ServiceKey

logger = logging.getLogger(__name__)


class CacheResource(Resource):
    """
    Redis client. Any driver other than "redis" leaves the cache disabled;
    the resource still becomes ready so dependents can check ``enabled``.
    """

    def __init__(self, settings: CacheSettings) -> None:
        super().__init__()
        self.settings = settings
        self._client: redis.Redis | None = None

    @property
    def enabled(self) -> bool:
        return self.settings.driver == "redis"

    @property
    def client(self) -> redis.Redis | None:
        self.require_ready()
        return self._client

    def _open(self, deadline: Deadline, deps: dict[ServiceKey, Resource]) -> None:
        if not self.enabled:
            logger.warning("Cache driver is '%s', skipping Redis initialization.", self.settings.driver)
            return
        timeout = max(0.1, deadline.remaining())
        client = redis.Redis.from_url(
            self.settings.redis_url,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
            health_check_interval=30,
        )
        self._client = client
        client.ping()
        logger.info("Cache resource (Redis) initialized")

    def _close(self, deadline: Deadline | None) -> None:
        if self._client is None:
            return
        self._client.close()
        self._client = None
        logger.info("Cache resource (Redis) closed")
