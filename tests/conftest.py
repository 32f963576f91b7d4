import pytest
from sqlalchemy import create_engine

from app.crm import auth, create_app
from app.crm.config import load_settings
from app.crm.models import Base

_UNSET = (
    "SMTP_HOST",
    "SMTP_FROM",
    "SMTP_USERNAME",
    "SMTP_PASSWORD",
    "REDIS_URL",
    "DEFAULT_ROLE",
    "RBAC_TABLE",
    "RBAC_AUTOSAVE",
    "SUPER_ADMIN_EMAIL",
    "SUPER_ADMIN_ROLE",
    "LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def _reset_login_attempts():
    auth._login_attempts.clear()
    yield
    auth._login_attempts.clear()


@pytest.fixture()
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path/'test.db'}"
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("CACHE_DRIVER", "memory")
    monkeypatch.setenv("SUPER_ADMIN_USERNAME", "root")
    monkeypatch.setenv("SUPER_ADMIN_PASSWORD", "s3cret")
    # Cheap hashes keep the suite fast.
    monkeypatch.setenv("PASSWORD_HASH_METHOD", "pbkdf2:sha256:1000")
    monkeypatch.setenv("RESOURCE_INIT_TIMEOUT", "10")
    for k in _UNSET:
        monkeypatch.delenv(k, raising=False)

    # Bootstrap runs inside create_app(), so the schema must exist first.
    engine = create_engine(url)
    Base.metadata.create_all(bind=engine)
    engine.dispose()
    return url


@pytest.fixture()
def settings(db_url):
    return load_settings()


@pytest.fixture()
def app(settings):
    app = create_app(settings)
    app.config["TESTING"] = True
    yield app
    app.extensions["crm_cleanup"]()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def policy_engine(app):
    return app.extensions["crm_registry"].policy().engine
