from __future__ import annotations

import os
from dataclasses import dataclass, field

from app.crm.errors import InsecureDefaultCredentials

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    pool_size: int = 5
    pool_recycle: int = 1800

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith("postgres")


@dataclass(frozen=True)
class CacheSettings:
    driver: str
    redis_url: str


@dataclass(frozen=True)
class EmailSettings:
    host: str = ""
    port: int = 587
    username: str = ""
    password: str = ""
    from_address: str = ""
    use_tls: bool = True


@dataclass(frozen=True)
class SuperAdminSettings:
    username: str = DEFAULT_ADMIN_USERNAME
    password: str = DEFAULT_ADMIN_PASSWORD
    email: str = ""
    role: str = "super_admin"


@dataclass(frozen=True)
class RbacSettings:
    table_name: str = "casbin_rule"
    autosave: bool = False


@dataclass(frozen=True)
class AuthSettings:
    super_admin: SuperAdminSettings = field(default_factory=SuperAdminSettings)
    rbac: RbacSettings = field(default_factory=RbacSettings)
    default_role: str = ""
    password_hash_method: str = "pbkdf2:sha256:600000"


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database: DatabaseSettings
    cache: CacheSettings
    email: EmailSettings
    auth: AuthSettings
    init_timeout: float = 20.0
    log_level: str = "INFO"
    log_format: str = "text"

    @property
    def is_production(self) -> bool:
        return self.env in ("prod", "production")


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _getenv_bool(name: str, default: bool) -> bool:
    raw = _getenv(name).lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    return default


def load_settings() -> Settings:
    timeout_raw = _getenv("RESOURCE_INIT_TIMEOUT", "20")
    try:
        init_timeout = float(timeout_raw)
    except ValueError:
        init_timeout = 20.0

    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development").lower(),
        database=DatabaseSettings(
            url=_getenv("DATABASE_URL", "sqlite:///crm.db"),
            pool_size=_getenv_int("DB_POOL_SIZE", 5),
            pool_recycle=_getenv_int("DB_POOL_RECYCLE", 1800),
        ),
        cache=CacheSettings(
            driver=_getenv("CACHE_DRIVER", "redis").lower(),
            redis_url=_getenv("REDIS_URL", "redis://localhost:6379/0"),
        ),
        email=EmailSettings(
            host=_getenv("SMTP_HOST"),
            port=_getenv_int("SMTP_PORT", 587),
            username=_getenv("SMTP_USERNAME"),
            password=os.environ.get("SMTP_PASSWORD") or "",
            from_address=_getenv("SMTP_FROM"),
            use_tls=_getenv_bool("SMTP_USE_TLS", True),
        ),
        auth=AuthSettings(
            super_admin=SuperAdminSettings(
                username=_getenv("SUPER_ADMIN_USERNAME", DEFAULT_ADMIN_USERNAME),
                # Passwords are not stripped; surrounding whitespace is significant.
                password=os.environ.get("SUPER_ADMIN_PASSWORD") or DEFAULT_ADMIN_PASSWORD,
                email=_getenv("SUPER_ADMIN_EMAIL").lower(),
                role=_getenv("SUPER_ADMIN_ROLE", "super_admin"),
            ),
            rbac=RbacSettings(
                table_name=_getenv("RBAC_TABLE", "casbin_rule"),
                autosave=_getenv_bool("RBAC_AUTOSAVE", False),
            ),
            default_role=_getenv("DEFAULT_ROLE"),
            password_hash_method=_getenv("PASSWORD_HASH_METHOD", "pbkdf2:sha256:600000"),
        ),
        init_timeout=init_timeout,
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        log_format=_getenv("LOG_FORMAT", "text").lower(),
    )


def check_production_guardrails(settings: Settings) -> None:
    """Fail fast on settings that must never reach production."""
    if not settings.is_production:
        return
    if not settings.database.url or settings.database.url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if settings.secret_key in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
    if settings.auth.super_admin.password == DEFAULT_ADMIN_PASSWORD:
        raise InsecureDefaultCredentials(
            "SUPER_ADMIN_PASSWORD must be set in production; refusing to start with the default password."
        )


def load_config(settings: Settings) -> dict:
    return {
        "SECRET_KEY": settings.secret_key,
        "ENV": settings.env,
        "DATABASE_URL": settings.database.url,
        "CRM_SETTINGS": settings,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": settings.is_production,
        "JSON_SORT_KEYS": False,
    }
