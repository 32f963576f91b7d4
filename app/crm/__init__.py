import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from app.crm.auth import bp as auth_bp, load_current_user
from app.crm.bootstrap import BootstrapReport, bootstrap
from app.crm.config import Settings, load_config, load_settings
from app.crm.db import teardown_db_session
from app.crm.errors import CRMError
from app.crm.logging_setup import configure_logging
from app.crm.permissions import bp as permissions_bp
from app.crm.rbac import enforce_request
from app.crm.resources import ResourceRegistry, ServiceKey
from app.crm.routes import bp as routes_bp

logger = logging.getLogger(__name__)


def register_routes(app: Flask) -> None:
    """
    Attach every blueprint and request hook. The discover tool runs this on
    an app that never serves traffic to read the route table.
    """
    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(permissions_bp, url_prefix="/api/v1")

    def _load_user_wrapper():
        if request.path.startswith(("/health", "/healthz", "/readyz")):
            g.current_user = None
            return None
        return load_current_user()

    # Order matters: the principal must be known before enforcement.
    app.before_request(_load_user_wrapper)
    app.before_request(enforce_request)
    app.teardown_appcontext(teardown_db_session)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(CRMError)
    def _crm_error(e: CRMError):  # type: ignore[no-redef]
        if e.status_code >= 500:
            app.logger.exception("Unhandled %s (request_id=%s)", e.code, getattr(g, "request_id", None))
        return jsonify(error=e.code, message=str(e)), e.status_code

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        return jsonify(error=(e.name or "error").lower().replace(" ", "_"), message=e.description), e.code

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify(error="internal_error", message="Internal server error."), 500


def create_app(
    settings: Settings | None = None,
    *,
    registry: ResourceRegistry | None = None,
    bootstrap_report: BootstrapReport | None = None,
) -> Flask:
    load_dotenv()
    settings = settings or load_settings()
    configure_logging(settings)

    app = Flask(__name__)
    app.config.from_mapping(load_config(settings))
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    if registry is None:
        registry, bootstrap_report, cleanup = bootstrap(settings)
    else:
        # Caller owns the registry and its shutdown.
        def cleanup() -> None:
            return None

    app.extensions["crm_registry"] = registry
    app.extensions["crm_bootstrap_report"] = bootstrap_report or BootstrapReport()
    app.extensions["crm_cleanup"] = cleanup

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                if ServiceKey.DB in registry and registry.all_ready:
                    registry.db().engine.dispose(close=False)
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    register_routes(app)
    _register_error_handlers(app)

    report = app.extensions["crm_bootstrap_report"]
    if not report.super_admin_ok:
        logger.warning("Running without a verified super-admin account: %s", "; ".join(report.errors) or "not bootstrapped")

    logger.info("create_app() complete; app ready to serve")
    return app
