import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping, Optional

from flask import Flask, jsonify
from sqlalchemy import text

from auth import auth_blueprint, get_current_player
from extensions import cors, db
from quests import create_quests_blueprint
from steam import RateLimiter, RequestCache, SteamGateway, SteamWebClient, create_steam_blueprint

# ====== Defaults ======
STEAM_CACHE_TTL_SECONDS = 60 * 60
STEAM_RATE_LIMIT_MAX = 10
STEAM_RATE_LIMIT_WINDOW_SECONDS = 60
STEAM_HTTP_TIMEOUT_SECONDS = 8
DEFAULT_CLIENT_URL = "http://localhost:3000"


def _env_flag(name: str, default: bool) -> bool:
    """Parse truthy feature-toggle values from the environment."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(app: Flask, name: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        app.logger.warning("Invalid %s value: %r. Using default %s.", name, raw, default)
        return default


def _normalize_database_url(url: str) -> str:
    # Heroku-style URLs use postgres:// which SQLAlchemy expects as postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def create_app(config_overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.permanent_session_lifetime = timedelta(days=1)

    overrides = dict(config_overrides or {})
    data_dir = Path(app.root_path) / "data"
    database_url = overrides.get("SQLALCHEMY_DATABASE_URI") or os.environ.get("DATABASE_URL")
    if not database_url:
        data_dir.mkdir(parents=True, exist_ok=True)
        database_url = f"sqlite:///{data_dir / 'app.db'}"

    app.config.update(
        SECRET_KEY=os.environ.get("SECRET_KEY") or os.urandom(24),
        SQLALCHEMY_DATABASE_URI=_normalize_database_url(database_url),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        STEAM_API_KEY=(os.environ.get("STEAM_API_KEY") or "").strip(),
        STEAM_CACHE_TTL_SECONDS=_env_int(app, "STEAM_CACHE_TTL_SECONDS", STEAM_CACHE_TTL_SECONDS, minimum=1),
        STEAM_RATE_LIMIT_MAX=_env_int(app, "STEAM_RATE_LIMIT_MAX", STEAM_RATE_LIMIT_MAX, minimum=1),
        STEAM_RATE_LIMIT_WINDOW_SECONDS=_env_int(
            app, "STEAM_RATE_LIMIT_WINDOW_SECONDS", STEAM_RATE_LIMIT_WINDOW_SECONDS, minimum=1
        ),
        STEAM_HTTP_TIMEOUT_SECONDS=_env_int(app, "STEAM_HTTP_TIMEOUT_SECONDS", STEAM_HTTP_TIMEOUT_SECONDS, minimum=1),
        LEADERBOARD_DEFAULT_LIMIT=10,
        LEADERBOARD_MAX_LIMIT=50,
        CLIENT_URL=os.environ.get("CLIENT_URL", DEFAULT_CLIENT_URL),
        STEAM_OPENID_VERIFIER=None,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        SESSION_COOKIE_SECURE=_env_flag("SESSION_COOKIE_SECURE", False),
    )
    app.config.update(overrides)

    if not app.config["STEAM_API_KEY"]:
        app.logger.warning("STEAM_API_KEY is not set; Steam Web API calls will fail.")

    # Tests inject ready-made Steam collaborators through config_overrides.
    if app.config.get("STEAM_CLIENT") is None:
        app.config["STEAM_CLIENT"] = SteamWebClient(
            app.config["STEAM_API_KEY"],
            timeout=app.config["STEAM_HTTP_TIMEOUT_SECONDS"],
        )
    if app.config.get("STEAM_GATEWAY") is None:
        app.config["STEAM_GATEWAY"] = SteamGateway(
            app.config["STEAM_CLIENT"],
            RequestCache(ttl_seconds=app.config["STEAM_CACHE_TTL_SECONDS"]),
            RateLimiter(
                max_requests=app.config["STEAM_RATE_LIMIT_MAX"],
                window_seconds=app.config["STEAM_RATE_LIMIT_WINDOW_SECONDS"],
            ),
        )

    db.init_app(app)

    app.register_blueprint(auth_blueprint)
    app.register_blueprint(create_steam_blueprint(get_current_player))
    app.register_blueprint(create_quests_blueprint(get_current_player))

    # Only CLIENT_URL may send the session cookie cross-origin.
    client_origin = {"origins": [app.config["CLIENT_URL"]]}
    cors.init_app(
        app,
        resources={r"/api/*": client_origin, r"/auth/*": client_origin},
        supports_credentials=True,
    )

    @app.errorhandler(404)
    def not_found(err):
        return jsonify({"error": "not_found", "message": "Resource not found"}), 404

    @app.errorhandler(500)
    def internal_error(err):
        app.logger.error("Unhandled error: %s", getattr(err, "original_exception", err))
        return jsonify({"error": "internal_error", "message": "Something went wrong!"}), 500

    @app.get("/")
    def home():
        return jsonify({"message": "Welcome to SteamQuest API"})

    @app.get("/api/health")
    def health():
        db_state = "ok"
        try:
            db.session.execute(text("SELECT 1"))
        except Exception as exc:
            app.logger.warning("Health check database ping failed: %s", exc)
            db_state = "fail"
        return jsonify({"ok": db_state == "ok", "service": "steamquest-backend", "db": db_state})

    with app.app_context():
        db.create_all()

    return app


if __name__ == "__main__":
    port = int(os.environ.get("PORT", "5000"))
    create_app().run(host="0.0.0.0", port=port, debug=_env_flag("FLASK_DEBUG", False))
