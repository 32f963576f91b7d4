import pytest
from sqlalchemy import create_engine

from app.crm.errors import EnforceError
from app.crm.policy import Decision, PolicyEngine, authorize, is_public_route
from app.crm.policy.adapter import build_adapter


@pytest.fixture()
def engine(tmp_path):
    sa_engine = create_engine(f"sqlite:///{tmp_path/'authz.db'}")
    engine = PolicyEngine(build_adapter(sa_engine))
    engine.add_policy("sales", "/api/v1/customers/:customer_id", "GET")
    engine.add_grouping_policy("u-sales", "sales")
    yield engine
    sa_engine.dispose()


class BrokenEngine:
    def get_roles_for_user(self, user):
        return ["sales"]

    def enforce(self, sub, obj, act):
        raise EnforceError("matcher blew up")


def test_public_route_needs_no_principal(engine):
    assert authorize(engine, None, "POST", "/api/v1/auth/login") is Decision.ANONYMOUS
    assert authorize(None, None, "POST", "/api/v1/auth/register") is Decision.ANONYMOUS


def test_whitelist_is_method_specific():
    assert is_public_route("POST", "/api/v1/auth/login")
    assert not is_public_route("GET", "/api/v1/auth/login")
    assert not is_public_route("POST", "/api/v1/auth/profile")


def test_missing_principal_is_denied(engine):
    assert authorize(engine, None, "GET", "/api/v1/customers/1") is Decision.DENY
    assert authorize(engine, "", "GET", "/api/v1/customers/1") is Decision.DENY


def test_allowed_through_role(engine):
    assert authorize(engine, "u-sales", "GET", "/api/v1/customers/7") is Decision.ALLOW


def test_wrong_method_or_no_role_is_denied(engine):
    assert authorize(engine, "u-sales", "DELETE", "/api/v1/customers/7") is Decision.DENY
    assert authorize(engine, "u-nobody", "GET", "/api/v1/customers/7") is Decision.DENY


def test_no_engine_denies_protected_routes():
    assert authorize(None, "u-sales", "GET", "/api/v1/customers/7") is Decision.DENY


def test_evaluation_error_counts_as_deny():
    assert authorize(BrokenEngine(), "u-sales", "GET", "/api/v1/customers/7") is Decision.DENY
