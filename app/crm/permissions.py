"""
Permission administration API.

Roles are plain names in the policy store; the assignable endpoints are the
``_all_apis_`` catalog written by the discover tool.
"""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.crm.db import db_session
from app.crm.errors import NotFound, ReservedSubject
from app.crm.models import AdminUser
from app.crm.policy.model import ALL_APIS_SUBJECT
from app.crm.rbac import policy_engine

bp = Blueprint("permissions", __name__)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _require_fields(data: dict, *names: str) -> tuple[str, ...] | None:
    values = tuple((str(data.get(n) or "")).strip() for n in names)
    if not all(values):
        return None
    return values


def _check_role(role: str) -> None:
    if role == ALL_APIS_SUBJECT:
        raise ReservedSubject(f"{ALL_APIS_SUBJECT} is reserved and cannot be used as a role")


def _rules_payload(rules: list[list[str]]) -> list[dict]:
    return [{"path": r[1], "method": r[2]} for r in rules]


@bp.get("/permissions/catalog")
def catalog():
    return jsonify(items=_rules_payload(policy_engine().get_filtered_policy(ALL_APIS_SUBJECT)))


@bp.get("/permissions/<role>")
def list_for_role(role: str):
    _check_role(role)
    return jsonify(role=role, items=_rules_payload(policy_engine().get_filtered_policy(role)))


@bp.post("/permissions")
def add_permission():
    fields = _require_fields(_json_body(), "role", "path", "method")
    if fields is None:
        return jsonify(error="invalid_request", message="role, path and method are required."), 400
    role, path, method = fields
    _check_role(role)
    engine = policy_engine()
    added = engine.add_policy(role, path, method.upper())
    if added:
        engine.save_policy()
        current_app.logger.info("Permission granted: %s %s %s", role, method.upper(), path)
    return jsonify(added=added), 201 if added else 200


@bp.delete("/permissions")
def remove_permission():
    fields = _require_fields(_json_body(), "role", "path", "method")
    if fields is None:
        return jsonify(error="invalid_request", message="role, path and method are required."), 400
    role, path, method = fields
    _check_role(role)
    engine = policy_engine()
    if not engine.remove_policy(role, path, method.upper()):
        raise NotFound("permission not found")
    engine.save_policy()
    current_app.logger.info("Permission revoked: %s %s %s", role, method.upper(), path)
    return jsonify(removed=True)


def _existing_user(user_id: str) -> AdminUser:
    user = db_session().get(AdminUser, user_id)
    if user is None:
        raise NotFound(f"user {user_id} not found")
    return user


@bp.post("/user-roles/assign")
def assign_role():
    fields = _require_fields(_json_body(), "user_id", "role")
    if fields is None:
        return jsonify(error="invalid_request", message="user_id and role are required."), 400
    user_id, role = fields
    _check_role(role)
    _existing_user(user_id)
    engine = policy_engine()
    added = engine.add_grouping_policy(user_id, role)
    if added:
        engine.save_policy()
    return jsonify(added=added), 201 if added else 200


@bp.post("/user-roles/remove")
def remove_role():
    fields = _require_fields(_json_body(), "user_id", "role")
    if fields is None:
        return jsonify(error="invalid_request", message="user_id and role are required."), 400
    user_id, role = fields
    engine = policy_engine()
    if not engine.remove_grouping_policy(user_id, role):
        raise NotFound("user role not found")
    engine.save_policy()
    return jsonify(removed=True)


@bp.get("/user-roles/<user_id>")
def roles_for_user(user_id: str):
    _existing_user(user_id)
    return jsonify(user_id=user_id, roles=policy_engine().get_roles_for_user(user_id))


@bp.get("/user-roles/users/<role>")
def users_for_role(role: str):
    _check_role(role)
    return jsonify(role=role, users=policy_engine().get_users_for_role(role))
