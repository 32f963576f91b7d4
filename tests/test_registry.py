import time

import pytest

from app.crm.errors import (
    DuplicateKey,
    InitTimeout,
    NotFound,
    NotReady,
    ResourceCloseError,
    ResourceInitError,
    UnmetDependency,
)
from app.crm.resources import Resource, ResourceRegistry, ResourceState, ServiceKey


class FakeResource(Resource):
    def __init__(self, label, calls, *, fail_open=None, fail_close=None, sleep=0.0, depends_on=()):
        super().__init__()
        self.label = label
        self.calls = calls
        self.fail_open = fail_open
        self.fail_close = fail_close
        self.sleep = sleep
        self.depends_on = tuple(depends_on)
        self.seen_deps = None

    @property
    def name(self):
        return self.label

    def _open(self, deadline, deps):
        self.calls.append(("open", self.label))
        self.seen_deps = deps
        if self.sleep:
            time.sleep(self.sleep)
        if self.fail_open:
            raise self.fail_open

    def _close(self, deadline):
        self.calls.append(("close", self.label))
        if self.fail_close:
            raise self.fail_close


def _registry(calls, **overrides):
    reg = ResourceRegistry()
    for key in (ServiceKey.DB, ServiceKey.CACHE, ServiceKey.POLICY, ServiceKey.EMAIL):
        reg.register(key, overrides.get(key.value) or FakeResource(key.value, calls))
    return reg


def test_init_all_runs_in_registration_order():
    calls = []
    reg = _registry(calls)
    reg.init_all(timeout=5)
    assert calls == [("open", "db"), ("open", "cache"), ("open", "casbin"), ("open", "email")]
    assert reg.all_ready
    assert reg.get(ServiceKey.DB).state is ResourceState.READY


def test_register_duplicate_key_rejected():
    calls = []
    reg = ResourceRegistry()
    reg.register(ServiceKey.DB, FakeResource("db", calls))
    with pytest.raises(DuplicateKey):
        reg.register(ServiceKey.DB, FakeResource("db2", calls))
    assert len(reg) == 1


def test_get_unknown_key_is_not_found():
    reg = ResourceRegistry()
    with pytest.raises(NotFound):
        reg.get(ServiceKey.CACHE)


def test_get_before_init_is_not_ready():
    reg = ResourceRegistry()
    reg.register(ServiceKey.DB, FakeResource("db", []))
    with pytest.raises(NotReady):
        reg.get(ServiceKey.DB)


def test_failed_init_rolls_back_in_reverse_order():
    calls = []
    boom = RuntimeError("redis unreachable")
    reg = _registry(calls, cache=FakeResource("cache", calls, fail_open=boom))

    with pytest.raises(ResourceInitError) as excinfo:
        reg.init_all(timeout=5)

    assert excinfo.value.key == "cache"
    assert excinfo.value.__cause__ is boom
    assert "init cache: redis unreachable" in str(excinfo.value)
    # Failing resource released first, then the already-started ones.
    assert calls == [("open", "db"), ("open", "cache"), ("close", "cache"), ("close", "db")]
    # Nothing after the failure was touched.
    assert reg._lookup(ServiceKey.POLICY).state is ResourceState.REGISTERED
    with pytest.raises(NotReady):
        reg.get(ServiceKey.DB)
    assert not reg.all_ready


def test_rollback_keeps_going_when_a_close_fails():
    calls = []
    reg = _registry(
        calls,
        db=FakeResource("db", calls, fail_close=RuntimeError("dispose failed")),
        casbin=FakeResource("casbin", calls, fail_open=RuntimeError("bad model")),
    )
    with pytest.raises(ResourceInitError):
        reg.init_all(timeout=5)
    assert ("close", "cache") in calls
    assert ("close", "db") in calls


def test_zero_timeout_fails_immediately_without_closing():
    calls = []
    reg = _registry(calls)
    with pytest.raises(InitTimeout):
        reg.init_all(timeout=0)
    assert calls == []


def test_deadline_exceeded_during_init():
    calls = []
    reg = _registry(calls, db=FakeResource("db", calls, sleep=0.05))
    with pytest.raises(InitTimeout):
        reg.init_all(timeout=0.01)
    assert ("open", "cache") not in calls
    assert ("close", "db") in calls


def test_dependencies_are_passed_to_initialize():
    calls = []
    db = FakeResource("db", calls)
    policy = FakeResource("casbin", calls, depends_on=(ServiceKey.DB,))
    reg = ResourceRegistry()
    reg.register(ServiceKey.DB, db)
    reg.register(ServiceKey.POLICY, policy)
    reg.init_all(timeout=5)
    assert policy.seen_deps == {ServiceKey.DB: db}


def test_dependency_registered_later_is_unmet():
    calls = []
    reg = ResourceRegistry()
    reg.register(ServiceKey.POLICY, FakeResource("casbin", calls, depends_on=(ServiceKey.DB,)))
    reg.register(ServiceKey.DB, FakeResource("db", calls))
    with pytest.raises(UnmetDependency):
        reg.init_all(timeout=5)
    assert ("open", "db") not in calls


def test_close_all_on_empty_registry():
    ResourceRegistry().close_all(timeout=1)


def test_close_all_reverse_order_and_only_ready():
    calls = []
    reg = _registry(calls)
    reg.init_all(timeout=5)
    calls.clear()
    reg.close_all(timeout=5)
    assert calls == [("close", "email"), ("close", "casbin"), ("close", "cache"), ("close", "db")]
    calls.clear()
    reg.close_all(timeout=5)
    assert calls == []


def test_close_all_aggregates_errors():
    calls = []
    reg = _registry(
        calls,
        cache=FakeResource("cache", calls, fail_close=RuntimeError("cache close")),
        email=FakeResource("email", calls, fail_close=RuntimeError("smtp close")),
    )
    reg.init_all(timeout=5)
    calls.clear()
    with pytest.raises(ResourceCloseError) as excinfo:
        reg.close_all(timeout=5)
    # Every close attempted despite the failures.
    assert [c[1] for c in calls] == ["email", "casbin", "cache", "db"]
    assert [key for key, _ in excinfo.value.errors] == ["email", "cache"]


def test_describe_reports_states():
    calls = []
    reg = _registry(calls)
    assert reg.describe()["db"]["state"] == "registered"
    reg.init_all(timeout=5)
    assert {v["state"] for v in reg.describe().values()} == {"ready"}
