from flask import Blueprint, current_app

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast liveness check for k8s probes. No DB access, minimal overhead.
    """
    return "ok", 200


@bp.get("/readyz")
def readyz():
    """
    Readiness: every resource initialized and the super-admin account in place.
    A CRM running without a super-admin reports 503 so operators notice.
    """
    registry = current_app.extensions["crm_registry"]
    report = current_app.extensions["crm_bootstrap_report"]
    ready = registry.all_ready and report.super_admin_ok
    body = {
        "ready": ready,
        "resources": registry.describe(),
        "bootstrap": report.as_dict(),
    }
    return body, 200 if ready else 503
