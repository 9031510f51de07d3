import logging
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, render_template, request, session

from app.motobooster.auth import bp as auth_bp, load_current_user
from app.motobooster.config import load_config
from app.motobooster.db import init_db
from app.motobooster.docstore import docstore_from_config
from app.motobooster.identity import identity_from_config
from app.motobooster.modules.customers.admin import bp as customers_bp
from app.motobooster.routes import bp as routes_bp

logger = logging.getLogger(__name__)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    from app.motobooster.security import ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_permissions() -> dict:
        from app.motobooster.rbac import user_has_permission

        def has_perm(key: str) -> bool:
            return user_has_permission(getattr(g, "current_user", None), key)

        return {"has_perm": has_perm, "current_user": getattr(g, "current_user", None)}

    @app.template_filter("timestamp")
    def _timestamp_filter(value) -> str:
        if not value:
            return "-"
        return str(value).replace("T", " ")[:19]

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Login and password help are reachable before a session exists.
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if app.config.get("IDENTITY_BACKEND") == "firebase" and not app.config.get("FIREBASE_API_KEY"):
            raise RuntimeError("FIREBASE_API_KEY is required when IDENTITY_BACKEND=firebase.")

    init_db(app)

    if app.config.get("DOCSTORE_BACKEND") == "firestore":
        missing = [
            key
            for key in ("FIREBASE_PROJECT_ID", "FIREBASE_CLIENT_EMAIL", "FIREBASE_PRIVATE_KEY")
            if not app.config.get(key)
        ]
        if missing:
            app.logger.error("DOCSTORE CONFIG ERROR: Missing required Firebase env vars: %s", ", ".join(missing))

    sessions = app.extensions["sqlalchemy_sessionmaker"]
    app.extensions["docstore"] = docstore_from_config(app.config, sessions)
    app.extensions["identity"] = identity_from_config(app.config, sessions)
    app.logger.info(
        "Document store backend=%s identity backend=%s",
        app.config.get("DOCSTORE_BACKEND"),
        app.config.get("IDENTITY_BACKEND"),
    )

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(customers_bp, url_prefix="/admin")

    def _load_user_wrapper():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)

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

    @app.errorhandler(400)
    def _err_400(e):  # type: ignore[no-redef]
        return render_template("errors/400.html", message="Bad request."), 400

    logger.info("create_app() complete; app ready to serve")
    return app
