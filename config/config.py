"""Settings shared by every environment; values come from the environment (.env)."""

import os


def _flag(name: str, default: str) -> bool:
    return bool(int(os.getenv(name, default)))


def _int_pair(name: str, default: str) -> tuple[int, int]:
    first, second = os.getenv(name, default).split(",", 1)
    return int(first), int(second)


SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "kintai_db"),
}

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SESSION_HOURS = int(os.getenv("SESSION_HOURS", "8"))

# QR attendance
QR_ALLOWED_LOCATIONS = tuple(
    s.strip() for s in os.getenv("QR_ALLOWED_LOCATIONS", "main,staff-room,office,test").split(",") if s.strip()
)
QR_MAX_AGE_HOURS = int(os.getenv("QR_MAX_AGE_HOURS", "24"))
BUSINESS_HOURS = _int_pair("BUSINESS_HOURS", "6,22")
LATE_GRACE_MINUTES = int(os.getenv("LATE_GRACE_MINUTES", "5"))

# requests per window (seconds) for /api/
API_RATE_LIMIT = _int_pair("API_RATE_LIMIT", "100,900")
# number of reverse proxies in front of the app; 0 ignores X-Forwarded-For
TRUSTED_PROXIES = int(os.getenv("TRUSTED_PROXIES", "0"))

ENABLE_SCHEDULER = _flag("ENABLE_SCHEDULER", "0")
SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE", "Asia/Tokyo")

DEBUG = False
TESTING = False

AUTO_INIT_DB = _flag("AUTO_INIT_DB", "0")
AUTO_SEED_DB = _flag("AUTO_SEED_DB", "0")
