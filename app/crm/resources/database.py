from __future__ import annotations

import logging

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker

from app.crm.config import DatabaseSettings
from app.crm.resources.base import Deadline, Resource, ServiceKey

logger = logging.getLogger(__name__)


class DatabaseResource(Resource):
    """SQLAlchemy engine plus the sessionmaker every request and script uses."""

    def __init__(self, settings: DatabaseSettings, *, echo_checkouts: bool = False) -> None:
        super().__init__()
        self.settings = settings
        self.echo_checkouts = echo_checkouts
        self._engine: Engine | None = None
        self._sessionmaker: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine:
        self.require_ready()
        assert self._engine is not None
        return self._engine

    @property
    def sessionmaker(self) -> sessionmaker[Session]:
        self.require_ready()
        assert self._sessionmaker is not None
        return self._sessionmaker

    def session(self) -> Session:
        return self.sessionmaker()

    def _engine_kwargs(self, deadline: Deadline) -> dict[str, object]:
        engine_kwargs: dict[str, object] = {
            "future": True,
            "pool_pre_ping": True,
        }
        if self.settings.is_postgres:
            engine_kwargs.update(
                {
                    "pool_recycle": self.settings.pool_recycle,
                    "pool_size": self.settings.pool_size,
                    "max_overflow": 10,
                    "pool_timeout": 30,
                    "connect_args": {"connect_timeout": max(1, int(deadline.remaining()))},
                }
            )
        return engine_kwargs

    def _open(self, deadline: Deadline, deps: dict[ServiceKey, Resource]) -> None:
        engine = create_engine(self.settings.url, **self._engine_kwargs(deadline))
        if self.echo_checkouts:
            @event.listens_for(engine, "checkout")
            def _receive_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
                logger.debug("DB connection checkout from pool")

        self._engine = engine
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        self._sessionmaker = sessionmaker(
            bind=engine,
            class_=Session,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )
        logger.info("Database resource initialized (%s)", engine.dialect.name)

    def _close(self, deadline: Deadline | None) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database resource closed")
