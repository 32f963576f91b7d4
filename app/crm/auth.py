from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from app.crm.db import db_session
from app.crm.models import AdminUser
from app.crm.rbac import policy_engine

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _user_payload(user: AdminUser) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "real_name": user.real_name,
        "is_active": user.is_active,
        "roles": policy_engine().get_roles_for_user(user.id),
    }


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    if request.path.startswith(("/health", "/healthz", "/readyz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    try:
        s = db_session()
        user = s.get(AdminUser, str(user_id))
        if not user or not user.is_active:
            session.pop("user_id", None)
            g.current_user = None
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        g.current_user = None


@bp.post("/login")
def login_post():
    data = _json_body()
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        return jsonify(error="rate_limited", message="Too many login attempts. Please wait 5 minutes."), 429

    _record_attempt(ip)

    s = db_session()
    user = s.query(AdminUser).filter(AdminUser.username == username).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        current_app.logger.info("Login failed (username=%s request_id=%s)", username, g.request_id)
        return jsonify(error="invalid_credentials", message="Invalid credentials."), 401

    session.clear()
    session["user_id"] = user.id
    _login_attempts[ip].clear()
    current_app.logger.info("Login ok (user_id=%s request_id=%s)", user.id, g.request_id)
    return jsonify(user=_user_payload(user))


@bp.post("/logout")
def logout():
    session.pop("user_id", None)
    return jsonify(ok=True)


@bp.get("/profile")
def profile_get():
    return jsonify(user=_user_payload(g.current_user))


@bp.put("/profile")
def profile_put():
    data = _json_body()
    s = db_session()
    user = s.get(AdminUser, g.current_user.id)
    if "email" in data:
        user.email = (data.get("email") or "").strip().lower()
    if "real_name" in data:
        user.real_name = (data.get("real_name") or "").strip()
    s.commit()
    return jsonify(user=_user_payload(user))


@bp.put("/password")
def password_put():
    data = _json_body()
    old = data.get("old_password") or ""
    new = data.get("new_password") or ""
    if len(new) < 8:
        return jsonify(error="invalid_password", message="New password must be at least 8 characters."), 400
    s = db_session()
    user = s.get(AdminUser, g.current_user.id)
    if not check_password_hash(user.password_hash, old):
        return jsonify(error="invalid_credentials", message="Current password is incorrect."), 400
    settings = current_app.config["CRM_SETTINGS"]
    user.password_hash = generate_password_hash(new, method=settings.auth.password_hash_method)
    s.commit()
    return jsonify(ok=True)


def _not_implemented():
    return jsonify(error="not_implemented", message="Not available in this deployment."), 501


# Public endpoints kept on the route table (they are whitelisted); the
# self-service flows behind them live outside this service.
for _name in ("register", "refresh", "forgot-password", "reset-password"):
    bp.add_url_rule(f"/{_name}", endpoint=_name.replace("-", "_"), view_func=_not_implemented, methods=["POST"])
