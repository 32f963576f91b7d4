"""
Error kinds raised by the CRM core.

HTTP-facing errors carry a status code and a short machine code; the app
factory renders them as JSON.
"""
from __future__ import annotations


class CRMError(Exception):
    status_code = 500
    code = "internal_error"


class DuplicateKey(CRMError):
    code = "duplicate_key"


class NotFound(CRMError):
    status_code = 404
    code = "not_found"


class NotReady(CRMError):
    status_code = 503
    code = "not_ready"


class UnmetDependency(CRMError):
    code = "unmet_dependency"


class InitTimeout(CRMError):
    code = "init_timeout"


class ResourceInitError(CRMError):
    """A resource failed to initialize; ``__cause__`` holds the original error."""

    code = "resource_init_failed"

    def __init__(self, key: str, cause: BaseException) -> None:
        super().__init__(f"init {key}: {cause}")
        self.key = key
        self.cause = cause


class ResourceCloseError(CRMError):
    """Aggregate of every close failure seen during shutdown."""

    code = "resource_close_failed"

    def __init__(self, errors: list[tuple[str, BaseException]]) -> None:
        detail = "; ".join(f"close {key}: {err}" for key, err in errors)
        super().__init__(detail)
        self.errors = errors


class PolicyPersistFailed(CRMError):
    code = "policy_persist_failed"


class EnforceError(CRMError):
    code = "enforce_error"


class ReservedSubject(CRMError):
    status_code = 400
    code = "reserved_subject"


class InsecureDefaultCredentials(CRMError):
    code = "insecure_default_credentials"


class AuthRequired(CRMError):
    status_code = 401
    code = "auth_required"


class Forbidden(CRMError):
    status_code = 403
    code = "forbidden"
