import os
from flask import Flask, jsonify

# Load .env only for local/dev. In prod, env vars come from the platform.
if os.getenv("APP_ENV", "development") != "production":
    from dotenv import load_dotenv
    load_dotenv(".env", override=True)


from .config import get_config
from .extensions import db, migrate, login_manager, limiter
from .errors import register_error_handlers
from .security import init_security
from .observability import init_logging, init_sentry


def create_app(gateway=None, notifier=None):
    app = Flask(__name__)

    # ---- Rate limiting storage ----
    app_env = (os.getenv("APP_ENV", "development") or "development").lower()
    use_redis = app_env in ("staging", "production")
    storage_uri = os.environ.get("REDIS_URL") if use_redis else "memory://"
    if use_redis and not storage_uri:
        # Hard fail in stage/prod so we never silently run without RL storage
        raise RuntimeError("REDIS_URL is required in staging/production for rate limiting")
    app.config["RATELIMIT_STORAGE_URI"] = storage_uri
    app.config.setdefault("RATELIMIT_HEADERS_ENABLED", True)

    app.config.from_object(get_config())
    app.config["APP_ENV"] = app_env

    # --- Required env validation for prod-like envs ---
    def _require(name: str):
        val = os.getenv(name) or app.config.get(name)
        if not val:
            raise RuntimeError(f"Missing required environment variable: {name}")
        return val

    if app_env in ("staging", "production"):
        _require("SECRET_KEY")
        _require("DATABASE_URL")
        # Razorpay / SMS credentials are checked at first use

    init_logging(app)
    init_sentry(app)
    if app_env in ("staging", "production"):
        init_security(app)

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db, directory="migrations")
    login_manager.init_app(app)
    limiter.init_app(app)

    _init_auth()

    # Gateway + SMS clients live on app.extensions
    from .services.recharge import init_recharge
    init_recharge(app, gateway=gateway, notifier=notifier)

    register_error_handlers(app)

    # Blueprints
    from .blueprints.main import bp as main_bp
    from .blueprints.auth import bp as auth_bp
    from .blueprints.customers import bp as customers_bp
    from .blueprints.payment import bp as payment_bp
    from .blueprints.transactions import bp as transactions_bp
    from .blueprints.settings import bp as settings_bp

    app.register_blueprint(main_bp)                                   # "/", "/healthz"
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(customers_bp, url_prefix="/api/customers")
    app.register_blueprint(payment_bp, url_prefix="/api/payment")
    app.register_blueprint(transactions_bp, url_prefix="/api/transactions")
    app.register_blueprint(settings_bp, url_prefix="/api/settings")

    # CLI commands (ops utilities)
    from .cli import register_cli
    register_cli(app)

    return app


def _init_auth():
    """Admin auth is a bearer token; no cookie login."""
    from .models import Admin
    from .services import tokens

    @login_manager.request_loader
    def _load_from_bearer(req):
        header = req.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        admin_id = tokens.verify(token.strip())
        if admin_id is None:
            return None
        admin = db.session.get(Admin, admin_id)
        return admin if admin is not None and admin.is_active else None

    @login_manager.unauthorized_handler
    def _unauthorized():
        return jsonify({
            "error": "unauthorized",
            "code": 401,
            "message": "Access denied. No valid token provided.",
        }), 401
