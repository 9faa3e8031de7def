import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, render_template, request, session

from app.bestbosses.config import load_config
from app.bestbosses import models  # noqa: F401  (registers every table on Base.metadata)
from app.bestbosses.db import init_db, teardown_db_session
from app.bestbosses.errors import AuthorizationError, NotFoundError, PersistenceError
from app.bestbosses.routes import bp as routes_bp
from app.bestbosses.auth import bp as auth_bp, load_current_user
from app.bestbosses.admin import bp as admin_bp
from app.bestbosses.modules.nominations.routes import bp as nominations_bp
from app.bestbosses.modules.nominations.admin import bp as nominations_admin_bp
from app.bestbosses.modules.notifications.service import get_dispatcher

logger = logging.getLogger(__name__)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    from app.bestbosses.rbac import is_admin
    from app.bestbosses.security import ensure_csrf_token, needs_csrf_check, validate_csrf

    @app.context_processor
    def _inject_globals() -> dict:
        user = getattr(g, "current_user", None)
        return {"csrf_token": ensure_csrf_token(), "current_user": user, "is_admin": is_admin(user)}

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if needs_csrf_check(request) and not validate_csrf(request):
            return render_template("errors/400.html", message="CSRF token missing or invalid."), 400
        return None

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if not app.config.get("ADMIN_EMAIL"):
            raise RuntimeError("ADMIN_EMAIL must be set in production (nobody could moderate nominations).")

    init_db(app)
    get_dispatcher(app)

    # gunicorn --preload forks after create_app(); children must not share pooled connections.
    if hasattr(os, "register_at_fork"):
        def _dispose_engine_after_fork() -> None:
            engine = app.extensions.get("sqlalchemy_engine")
            if engine is not None:
                engine.dispose(close=False)

        os.register_at_fork(after_in_child=_dispose_engine_after_fork)

    if app.config.get("NOTIFICATION_BACKEND") == "smtp" and not app.config.get("SMTP_SERVER"):
        app.logger.error("NOTIFICATION CONFIG ERROR: NOTIFICATION_BACKEND=smtp but SMTP_SERVER is not set; emails will queue and fail.")

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(nominations_bp)
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(nominations_admin_bp, url_prefix="/admin")

    def _load_user_wrapper():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(NotFoundError)
    def _err_not_found(e):  # type: ignore[no-redef]
        return render_template("errors/404.html", message=str(e)), 404

    @app.errorhandler(AuthorizationError)
    def _err_access_required(e):  # type: ignore[no-redef]
        return render_template("errors/access_required.html", message=str(e)), 403

    @app.errorhandler(PersistenceError)
    def _err_persistence(e):  # type: ignore[no-redef]
        app.logger.exception("Persistence failure (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return render_template("errors/404.html", message=None), 404

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return render_template("errors/403.html", missing_permission=missing), 403

    logger.info("create_app() complete; app ready to serve")
    return app
