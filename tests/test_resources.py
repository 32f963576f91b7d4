import json
import logging

import pytest
import redis

from app.crm.config import CacheSettings, EmailSettings, load_settings
from app.crm.errors import NotReady
from app.crm.logging_setup import JsonLogFormatter
from app.crm.resources import Deadline, ResourceState
from app.crm.resources.cache import CacheResource
from app.crm.resources.mailer import MailerResource


class FakeRedis:
    def __init__(self):
        self.pinged = False
        self.closed = False

    def ping(self):
        self.pinged = True
        return True

    def close(self):
        self.closed = True


class FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.tls = False
        self.login_as = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.tls = True

    def login(self, username, password):
        self.login_as = username

    def send_message(self, msg):
        FakeSMTP.sent.append((self, msg))


def test_cache_disabled_driver_still_becomes_ready():
    res = CacheResource(CacheSettings(driver="memory", redis_url="redis://unused"))
    res.initialize(Deadline(5))
    assert res.state is ResourceState.READY
    assert res.enabled is False
    assert res.client is None
    res.close()
    assert res.state is ResourceState.CLOSED


def test_cache_redis_pings_and_closes(monkeypatch):
    fake = FakeRedis()
    seen = {}

    def from_url(url, **kwargs):
        seen["url"] = url
        seen.update(kwargs)
        return fake

    monkeypatch.setattr(redis.Redis, "from_url", staticmethod(from_url))
    res = CacheResource(CacheSettings(driver="redis", redis_url="redis://cache:6379/1"))
    res.initialize(Deadline(5))
    assert fake.pinged
    assert res.client is fake
    assert seen["url"] == "redis://cache:6379/1"
    assert 0 < seen["socket_connect_timeout"] <= 5

    res.close()
    assert fake.closed
    with pytest.raises(NotReady):
        res.client


def test_mailer_without_host_is_ready_but_sends_nothing():
    res = MailerResource(EmailSettings())
    res.initialize(Deadline(5))
    assert res.is_ready
    assert res.send("a@example.com", "hi", "body") is False


def test_mailer_host_without_sender_fails_init():
    res = MailerResource(EmailSettings(host="smtp.example.com"))
    with pytest.raises(ValueError):
        res.initialize(Deadline(5))
    assert res.state is ResourceState.FAILED


def test_mailer_sends_over_smtp(monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr("app.crm.resources.mailer.smtplib.SMTP", FakeSMTP)
    res = MailerResource(
        EmailSettings(host="smtp.example.com", port=2525, username="crm", password="pw", from_address="crm@example.com")
    )
    res.initialize(Deadline(5))
    assert res.send("ops@example.com", "Report", "All good.") is True

    server, msg = FakeSMTP.sent[0]
    assert (server.host, server.port, server.tls, server.login_as) == ("smtp.example.com", 2525, True, "crm")
    assert msg["To"] == "ops@example.com"
    assert msg["From"] == "crm@example.com"


def test_mailer_send_before_init_is_not_ready():
    with pytest.raises(NotReady):
        MailerResource(EmailSettings()).send("a@example.com", "hi", "body")


def test_settings_defaults(monkeypatch):
    for k in ("ENV", "DATABASE_URL", "CACHE_DRIVER", "SUPER_ADMIN_USERNAME", "SUPER_ADMIN_PASSWORD",
              "SUPER_ADMIN_ROLE", "DEFAULT_ROLE", "RBAC_TABLE", "RBAC_AUTOSAVE", "RESOURCE_INIT_TIMEOUT"):
        monkeypatch.delenv(k, raising=False)
    s = load_settings()
    assert s.env == "development"
    assert s.database.url == "sqlite:///crm.db"
    assert s.cache.driver == "redis"
    assert s.auth.super_admin.username == "admin"
    assert s.auth.super_admin.role == "super_admin"
    assert s.auth.default_role == ""
    assert s.auth.rbac.table_name == "casbin_rule"
    assert s.auth.rbac.autosave is False
    assert s.init_timeout == 20.0


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("ENV", "Production")
    monkeypatch.setenv("DB_POOL_SIZE", "not-a-number")
    monkeypatch.setenv("RBAC_AUTOSAVE", "yes")
    monkeypatch.setenv("RESOURCE_INIT_TIMEOUT", "3.5")
    monkeypatch.setenv("SUPER_ADMIN_EMAIL", " Root@Example.COM ")
    s = load_settings()
    assert s.is_production
    assert s.database.pool_size == 5
    assert s.auth.rbac.autosave is True
    assert s.init_timeout == 3.5
    assert s.auth.super_admin.email == "root@example.com"


def test_json_log_formatter():
    record = logging.LogRecord("app.crm.test", logging.WARNING, __file__, 1, "hello %s", ("world",), None)
    record.request_id = "abc123"
    payload = json.loads(JsonLogFormatter().format(record))
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "app.crm.test"
    assert payload["message"] == "hello world"
    assert payload["request_id"] == "abc123"
