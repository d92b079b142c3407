import os


def normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError("Currency must be a 3-letter ISO 4217 code.")
    return normalized


def get_system_default_currency() -> str:
    raw = os.getenv("DEFAULT_CURRENCY", "USD")
    try:
        return normalize_currency(raw)
    except ValueError:
        return "USD"


def get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./finance_tracker.db")
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "http://localhost:5173")
APP_ENV = os.getenv("APP_ENV", "production").strip().lower()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

DEV_JWT_SECRET = "finance-tracker-dev-secret"
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_DAYS = get_int_env("JWT_EXPIRE_DAYS", 7)

SYSTEM_DEFAULT_CURRENCY = get_system_default_currency()


def is_development() -> bool:
    return APP_ENV == "development"


def get_jwt_secret() -> str:
    """Signing key for bearer tokens; the built-in key is only used in development."""
    secret = os.getenv("JWT_SECRET", "").strip()
    if secret:
        return secret
    if is_development():
        return DEV_JWT_SECRET
    raise RuntimeError("JWT_SECRET must be set unless APP_ENV=development.")
