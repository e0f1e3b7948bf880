import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request, session
from sqlalchemy import inspect as sa_inspect
from werkzeug.exceptions import HTTPException

from app.distro.config import load_config
from app.distro.db import init_db, teardown_db_session
from app.distro.routes import bp as routes_bp
from app.distro.auth import bp as auth_bp, load_current_user
from app.distro.admin import bp as admin_bp
from app.distro.modules.releases.lifecycle import TransitionError
from app.distro.modules.releases.routes import bp as releases_bp
from app.distro.modules.releases.admin import bp as releases_admin_bp
from app.distro.modules.uploads.routes import bp as uploads_bp
from app.distro.modules.metadata.routes import bp as metadata_bp, admin_bp as metadata_admin_bp
from app.distro.modules.service_requests.routes import bp as requests_bp, admin_bp as requests_admin_bp
from app.distro.modules.label_publisher.routes import (
    admin_bp as label_publisher_admin_bp,
    bp as label_publisher_bp,
    custom_labels_bp,
    profile_bp,
)
from app.distro.modules.agreements.routes import bp as agreements_bp, admin_bp as agreements_admin_bp

# Columns added after the first release; a DB missing them needs `alembic upgrade head`.
_EXPECTED_COLUMNS = {
    "releases": ("status", "rejection_reason", "allow_resubmission", "sub_label_id", "primary_artist_id"),
    "tracks": ("audio_key", "crbt_start_time", "crbt_end_time"),
}
_EXPECTED_TABLES = ("file_uploads", "global_settings", "custom_label_requests", "agreement_requests")

_UNAUTHENTICATED_PREFIXES = ("/storage/", "/health", "/healthz", "/api/health")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])

    from app.distro.security import ensure_csrf_token, validate_csrf

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_UNAUTHENTICATED_PREFIXES):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # login/signup/logout establish or drop the session the token lives in
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return jsonify({"error": "CSRF token missing or invalid."}), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if app.config.get("STORAGE_BACKEND") != "s3":
            app.logger.warning("STORAGE_BACKEND is not s3 in production; uploads will be served by the app itself.")

    init_db(app)

    if hasattr(os, "register_at_fork"):
        def _after_fork_child():
            engine = app.extensions.get("sqlalchemy_engine")
            if engine:
                engine.dispose()
                app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

        os.register_at_fork(after_in_child=_after_fork_child)

    # Storage health check (fail loudly on misconfiguration)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [k for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not app.config.get(k)]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))
        else:
            from botocore.exceptions import BotoCoreError, ClientError

            from app.distro.storage import S3Storage, storage_from_config

            storage = storage_from_config(app.config)
            try:
                if isinstance(storage, S3Storage):
                    storage._client().head_bucket(Bucket=storage.bucket)
                    app.logger.info("Storage health check PASSED: S3 bucket '%s' accessible", storage.bucket)
            except (BotoCoreError, ClientError) as e:
                app.logger.error("STORAGE CONFIG ERROR: Cannot access S3 bucket: %s", e)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(releases_bp, url_prefix="/api/releases")
    app.register_blueprint(uploads_bp, url_prefix="/api/upload")
    app.register_blueprint(metadata_bp, url_prefix="/api/metadata")
    app.register_blueprint(requests_bp, url_prefix="/api")
    app.register_blueprint(label_publisher_bp, url_prefix="/api/label-publisher")
    app.register_blueprint(custom_labels_bp, url_prefix="/api/custom-labels")
    app.register_blueprint(profile_bp, url_prefix="/api/profile")
    app.register_blueprint(agreements_bp, url_prefix="/api/agreement")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")
    app.register_blueprint(releases_admin_bp, url_prefix="/api/admin")
    app.register_blueprint(requests_admin_bp, url_prefix="/api/admin")
    app.register_blueprint(label_publisher_admin_bp, url_prefix="/api/admin")
    app.register_blueprint(agreements_admin_bp, url_prefix="/api/admin")
    app.register_blueprint(metadata_admin_bp, url_prefix="/api/admin")

    def _load_user_wrapper():
        if request.path.startswith(_UNAUTHENTICATED_PREFIXES):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    @app.after_request
    def _cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config.get("CORS_ORIGINS", []):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, X-CSRF-Token"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            response.headers.add("Vary", "Origin")
        return response

    # Migration health (lean): detect drift between code expectations and DB schema.
    app.config.setdefault("_schema_health_ok", True)
    app.config.setdefault("_schema_health_missing", [])

    def _run_schema_health_check() -> None:
        missing: list[str] = []
        engine = app.extensions["sqlalchemy_engine"]
        insp = sa_inspect(engine)
        if not insp.has_table("releases"):
            # Fresh database: nothing to compare until migrations (or create_all) have run.
            return
        for table, expected in _EXPECTED_COLUMNS.items():
            if not insp.has_table(table):
                missing.append(f"{table} (table)")
                continue
            cols = {c["name"] for c in insp.get_columns(table)}
            missing.extend(f"{table}.{col}" for col in expected if col not in cols)
        missing.extend(f"{t} (table)" for t in _EXPECTED_TABLES if not insp.has_table(t))

        if missing:
            app.config["_schema_health_ok"] = False
            app.config["_schema_health_missing"] = missing
            app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))

    _run_schema_health_check()

    @app.before_request
    def _schema_health_guardrail():  # type: ignore[no-redef]
        if app.config.get("_schema_health_ok"):
            return None
        if request.path.startswith("/api/") and not request.path.startswith("/api/health"):
            return jsonify({"error": "Database schema is out of date", "missing": app.config.get("_schema_health_missing") or []}), 503
        return None

    @app.errorhandler(TransitionError)
    def _err_transition(e: TransitionError):  # type: ignore[no-redef]
        app.logger.info("Refused %s on release in %s (request_id=%s)", e.action, e.status, getattr(g, "request_id", None))
        return jsonify({"error": str(e), "action": e.action, "status": e.status}), 400

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return jsonify({"error": "You do not have access to this resource"}), 403

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        limit_mb = (app.config.get("MAX_CONTENT_LENGTH") or 0) // (1024 * 1024)
        return jsonify({"error": f"File too large. Maximum size is {limit_mb}MB."}), 413

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        return jsonify({"error": e.description or e.name}), e.code or 500

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "Internal server error"}), 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
