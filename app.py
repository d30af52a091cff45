import os
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from admin import admin_bp
from community import community_bp
from errors import ServiceError, server_error_response
from extensions import db
from health import health_bp
from menu import menu_bp
from quiz import quiz_bp
from store import SqlStore, StoreError, SupabaseStore

# Try to import Supabase client
try:
    from supabase import create_client, Client  # type: ignore
except Exception:
    create_client, Client = None, None


# ====== Environment helpers ======
def _env_flag(name: str, default: bool) -> bool:
    """Parse truthy feature-toggle values from the environment."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        print(f"⚠️ Invalid {name} value: {raw!r}. Using default {default}.")
        return default


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip() or default


def load_config() -> Dict[str, Any]:
    """Read every setting the promo back-end needs from the environment."""
    config = {
        "USE_SUPABASE": _env_flag("USE_SUPABASE", True),
        "SUPABASE_URL": _env_str("SUPABASE_URL"),
        "SUPABASE_KEY": _env_str("SUPABASE_KEY"),
        "DATABASE_URL": _env_str("DATABASE_URL"),
        "ADMIN_PASSWORD": _env_str("ADMIN_PASSWORD"),
        "HEALTHCHECK_SECRET": _env_str("HEALTHCHECK_SECRET"),
        "SECURITY_TOKEN_SECRET": _env_str("SECURITY_TOKEN_SECRET", ""),
        "RESEND_API_KEY": _env_str("RESEND_API_KEY"),
        "EMAIL_FROM": _env_str("EMAIL_FROM"),
        "HEALTH_REPORT_RECIPIENT": _env_str("HEALTH_REPORT_RECIPIENT"),
        "PUBLIC_SITE_URL": _env_str("PUBLIC_SITE_URL", ""),
        "SESSION_TTL_MINUTES": _env_int("SESSION_TTL_MINUTES", 10, minimum=1),
        "ANSWER_EXTEND_MINUTES": _env_int("ANSWER_EXTEND_MINUTES", 5, minimum=0),
        "WEEKLY_STOCK_DEFAULTS": {
            "formule_complete": _env_int("WEEKLY_STOCK_FORMULE_COMPLETE", 1),
            "galette": _env_int("WEEKLY_STOCK_GALETTE", 3),
            "crepe": _env_int("WEEKLY_STOCK_CREPE", 5),
        },
        "TIMEZONE": _env_str("TIMEZONE", "Europe/Paris"),
    }
    if not config["ADMIN_PASSWORD"]:
        print("⚠️ ADMIN_PASSWORD is not set; admin scan requests will fail.")
    if config["RESEND_API_KEY"] and not config["HEALTH_REPORT_RECIPIENT"]:
        print("⚠️ HEALTH_REPORT_RECIPIENT is not set; health reports will not be emailed.")
    return config


def _build_supabase_client(config: Dict[str, Any]):
    if not (config["USE_SUPABASE"] and create_client and config["SUPABASE_URL"] and config["SUPABASE_KEY"]):
        return None
    try:
        client: Client = create_client(config["SUPABASE_URL"], config["SUPABASE_KEY"])
    except Exception as e:
        print("⚠️ Could not init Supabase client:", e)
        return None
    return client


# ====== Flask setup ======
def create_app(overrides: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.update(load_config())
    app.config.update(overrides or {})

    if app.config.get("DATABASE_URL"):
        app.config.setdefault("SQLALCHEMY_DATABASE_URI", app.config["DATABASE_URL"])
    if "SQLALCHEMY_DATABASE_URI" not in app.config:
        data_dir = Path(app.root_path) / "data"
        data_dir.mkdir(parents=True, exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{data_dir / 'app.db'}"
    app.config.setdefault("SQLALCHEMY_TRACK_MODIFICATIONS", False)
    db.init_app(app)

    if app.config.get("QUIZ_STORE") is None:
        supabase = _build_supabase_client(app.config)
        app.config["SUPABASE_CLIENT"] = supabase
        if supabase is not None:
            app.config["QUIZ_STORE"] = SupabaseStore(supabase)
        else:
            if app.config["USE_SUPABASE"]:
                print("⚠️ Supabase not configured; falling back to the SQL store.")
            app.config["QUIZ_STORE"] = SqlStore(
                stock_defaults=app.config["WEEKLY_STOCK_DEFAULTS"],
                timezone_name=app.config["TIMEZONE"],
            )

    _register_http_hooks(app)
    _register_error_handlers(app)

    app.register_blueprint(quiz_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(menu_bp)
    app.register_blueprint(community_bp)
    app.register_blueprint(health_bp)

    with app.app_context():
        db.create_all()

    return app


# ====== CORS ======
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
}


def _register_http_hooks(app: Flask) -> None:
    @app.before_request
    def answer_preflight():
        if request.method == "OPTIONS":
            return "", 204

    @app.after_request
    def add_cors_headers(response):
        for header, value in CORS_HEADERS.items():
            response.headers.setdefault(header, value)
        if response.status_code >= 400:
            response.headers["Cache-Control"] = "no-store"
        return response


# ====== Error envelope ======
def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ServiceError)
    def handle_service_error(exc: ServiceError):
        return jsonify(exc.payload), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        code = (exc.name or "error").lower().replace(" ", "_")
        return jsonify({"error": code, "message": exc.description}), exc.code or 500

    @app.errorhandler(StoreError)
    def handle_store_error(exc: StoreError):
        current_app.logger.error("Store failure during %s: %s", exc.action, exc.detail)
        return server_error_response()

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return server_error_response()


# ====== Entrypoint ======
# gunicorn "app:create_app()"
if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.environ.get("PORT", 8080)), debug=True)
