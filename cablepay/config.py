import os


def _env_bool(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or default).lower() in ("1", "true", "yes")


class BaseConfig:
    # Secrets (env in prod; dev/test may use defaults)
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-not-secure")
    JSON_SORT_KEYS = False

    # Database (env in prod; dev/test may use default)
    try:
        from dotenv import dotenv_values
        _ENV_FALLBACK = dotenv_values(".env")
    except Exception:
        _ENV_FALLBACK = {}
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or _ENV_FALLBACK.get("DATABASE_URL") or "sqlite:///cablepay.db"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging / misc
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # Flask-Limiter default: off globally; prefer per-route limits
    RATELIMIT_DEFAULT = None

    # --- Admin bearer tokens ---
    ADMIN_TOKEN_SALT = os.getenv("ADMIN_TOKEN_SALT", "admin-token-v1")
    ADMIN_TOKEN_TTL_SECONDS = int(os.getenv("ADMIN_TOKEN_TTL_SECONDS", str(24 * 60 * 60)))

    # --- Razorpay (payments) ---
    RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
    RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")

    # Charge the server-side quote instead of the amount posted by the form
    ENFORCE_SERVER_PRICING = _env_bool("ENFORCE_SERVER_PRICING")

    # --- SMS (recharge confirmations) ---
    SMS_API_KEY = os.getenv("SMS_API_KEY")
    SMS_API_URL = os.getenv("SMS_API_URL", "https://www.fast2sms.com/dev/bulkV2")
    SMS_SENDER = os.getenv("SMS_SENDER", "Happy Star Satellite Vision")
    SMS_TIMEOUT_SECONDS = float(os.getenv("SMS_TIMEOUT_SECONDS", "5"))

    # --- Customers ---
    BULK_MAX_ROWS = int(os.getenv("BULK_MAX_ROWS", "1000"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")
    SESSION_COOKIE_SECURE = False


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "WARNING")
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_SAMESITE = os.environ.get("SESSION_COOKIE_SAMESITE", "Lax")


class TestingConfig(BaseConfig):
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite:///:memory:")
    SESSION_COOKIE_SECURE = False
    RATELIMIT_ENABLED = False
    RAZORPAY_KEY_ID = "rzp_test_key"
    RAZORPAY_KEY_SECRET = "test_razorpay_secret"
    SMS_API_KEY = None


_ENV_MAP = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def get_config():
    env = os.environ.get("APP_ENV", "development").lower()
    return _ENV_MAP.get(env, DevelopmentConfig)
