from app.crm.bootstrap import sync_super_admin_permissions
from app.crm.policy.seeder import seed_api_policies
from app.crm.route_catalog import list_routes


def _login(client, username="root", password="s3cret"):
    return client.post("/api/v1/auth/login", json={"username": username, "password": password})


def _grant_everything(app, engine):
    seed_api_policies(engine, list_routes(app))
    sync_super_admin_permissions(engine, "super_admin")


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert client.get("/healthz").status_code == 200


def test_readyz_reports_resources_and_admin(client):
    r = client.get("/readyz")
    assert r.status_code == 200
    assert r.json["ready"] is True
    assert r.json["bootstrap"]["super_admin_ok"] is True
    assert set(r.json["resources"]) == {"db", "cache", "casbin", "email"}


def test_anonymous_api_call_is_unauthorized(client):
    r = client.get("/api/v1/auth/profile")
    assert r.status_code == 401
    assert r.json["error"] == "auth_required"


def test_bad_credentials(client):
    r = _login(client, password="nope")
    assert r.status_code == 401
    assert r.json["error"] == "invalid_credentials"


def test_login_rate_limited(client):
    for _ in range(5):
        _login(client, password="nope")
    r = _login(client)
    assert r.status_code == 429


def test_login_then_access_follows_policy(app, client, policy_engine):
    r = _login(client)
    assert r.status_code == 200
    assert r.json["user"]["roles"] == ["super_admin"]

    # Role exists but holds no permissions until the catalog is synced.
    r = client.get("/api/v1/auth/profile")
    assert r.status_code == 403
    assert r.json["error"] == "forbidden"

    _grant_everything(app, policy_engine)
    r = client.get("/api/v1/auth/profile")
    assert r.status_code == 200
    assert r.json["user"]["username"] == "root"

    r = client.post("/api/v1/auth/logout")
    assert r.status_code == 200
    assert client.get("/api/v1/auth/profile").status_code == 401


def test_public_stubs_reachable_without_login(client):
    r = client.post("/api/v1/auth/register", json={})
    assert r.status_code == 501


def test_change_password(app, client, policy_engine):
    _grant_everything(app, policy_engine)
    _login(client)

    r = client.put("/api/v1/auth/password", json={"old_password": "s3cret", "new_password": "short"})
    assert r.status_code == 400
    r = client.put("/api/v1/auth/password", json={"old_password": "wrong-one", "new_password": "long-enough-1"})
    assert r.status_code == 400
    r = client.put("/api/v1/auth/password", json={"old_password": "s3cret", "new_password": "long-enough-1"})
    assert r.status_code == 200

    client.post("/api/v1/auth/logout")
    assert _login(client).status_code == 401
    assert _login(client, password="long-enough-1").status_code == 200


def test_permissions_api(app, client, policy_engine):
    _grant_everything(app, policy_engine)
    me = _login(client).json["user"]

    r = client.get("/api/v1/permissions/catalog")
    assert r.status_code == 200
    assert {"path": "/api/v1/auth/profile", "method": "GET"} in r.json["items"]

    body = {"role": "sales", "path": "/api/v1/auth/profile", "method": "get"}
    assert client.post("/api/v1/permissions", json=body).status_code == 201
    assert client.post("/api/v1/permissions", json=body).status_code == 200
    r = client.get("/api/v1/permissions/sales")
    assert r.json["items"] == [{"path": "/api/v1/auth/profile", "method": "GET"}]

    r = client.post("/api/v1/user-roles/assign", json={"user_id": me["id"], "role": "sales"})
    assert r.status_code == 201
    r = client.get(f"/api/v1/user-roles/{me['id']}")
    assert sorted(r.json["roles"]) == ["sales", "super_admin"]
    r = client.get("/api/v1/user-roles/users/sales")
    assert r.status_code == 200
    assert r.json["users"] == [me["id"]]
    assert client.get("/api/v1/user-roles/users/_all_apis_").status_code == 400

    r = client.post("/api/v1/user-roles/assign", json={"user_id": me["id"], "role": "_all_apis_"})
    assert r.status_code == 400
    assert r.json["error"] == "reserved_subject"

    r = client.post("/api/v1/user-roles/assign", json={"user_id": "no-such-user", "role": "sales"})
    assert r.status_code == 404

    assert client.post("/api/v1/permissions", json={"role": "sales"}).status_code == 400
    assert client.delete("/api/v1/permissions", json=body).status_code == 200
    assert client.delete("/api/v1/permissions", json=body).status_code == 404

    # Persisted: reload from the store and the changes survive.
    policy_engine.load_policy()
    assert policy_engine.has_grouping_policy(me["id"], "sales")
    assert not policy_engine.has_policy("sales", "/api/v1/auth/profile", "GET")
