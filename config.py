"""
Application configuration loaded from the environment (.env supported)
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _build_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    # Classic synchronous URL, psycopg2 driver by default
    return (
        f"postgresql://{os.getenv('DB_USER')}:{os.getenv('DB_PASSWORD')}"
        f"@{os.getenv('DB_HOST')}:{os.getenv('DB_PORT')}/{os.getenv('DB_NAME')}"
    )


# Database
DATABASE_URL = _build_database_url()

# Security
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production-pms-dashboard")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
MAX_FAILED_LOGINS = 5
LOCKOUT_MINUTES = 30

# CORS
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

# Rate limiting
RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED")
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")
RATE_LIMIT_LOGIN = os.getenv("RATE_LIMIT_LOGIN", "10/minute")
RATE_LIMIT_PUBLIC_BOOKING = os.getenv("RATE_LIMIT_PUBLIC_BOOKING", "5/minute")
REDIS_URL = os.getenv("REDIS_URL", "memory://")

# Hotel operation
HOTEL_TIMEZONE = os.getenv("HOTEL_TIMEZONE", "Asia/Riyadh")
CHECKIN_HOUR = int(os.getenv("CHECKIN_HOUR", "15"))
CHECKOUT_HOUR = int(os.getenv("CHECKOUT_HOUR", "12"))

# Billing
VAT_RATE = float(os.getenv("VAT_RATE", "0.15"))
INVOICE_DUE_DAYS = int(os.getenv("INVOICE_DUE_DAYS", "7"))
DEFAULT_COMMISSION_RATE = float(os.getenv("DEFAULT_COMMISSION_RATE", "0.15"))
PAYMENT_LINK_BASE_URL = os.getenv("PAYMENT_LINK_BASE_URL", "http://localhost:3000/guest/bill").rstrip("/")
PAYMENT_LINK_TTL_HOURS = int(os.getenv("PAYMENT_LINK_TTL_HOURS", "72"))

# Channel manager
CHANNEL_WEBHOOK_SECRET = os.getenv("CHANNEL_WEBHOOK_SECRET", "")

# Smart locks
ACCESS_CODE_MAX_ATTEMPTS = int(os.getenv("ACCESS_CODE_MAX_ATTEMPTS", "20"))
LOCK_HTTP_TIMEOUT = float(os.getenv("LOCK_HTTP_TIMEOUT", "10"))
LOW_BATTERY_THRESHOLD = 20

# Logging
LOG_FILE = os.getenv("LOG_FILE", "pms_logs.txt")
