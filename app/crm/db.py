from __future__ import annotations

import logging
from contextlib import contextmanager
from collections.abc import Generator

from flask import current_app, g
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)


def db_session() -> Session:
    """
    Request-scoped session. Use inside request handlers.
    """
    if getattr(g, "db_session", None) is not None:
        return g.db_session
    registry = current_app.extensions["crm_registry"]
    g.db_session = registry.db().session()  # type: ignore[assignment]
    return g.db_session


def teardown_db_session(_exc: BaseException | None) -> None:
    s: Session | None = getattr(g, "db_session", None)
    if s is not None:
        try:
            s.close()
        except Exception:
            logger.exception("Failed to close request session")
        g.db_session = None


@contextmanager
def session_scope(sm: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Non-request helper for bootstrap and scripts: yields a session and commits/rolls back.
    """
    s: Session = sm()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
