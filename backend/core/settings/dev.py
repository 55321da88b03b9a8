# flake8: noqa
"""
Local development settings for Team Ledger.

Debug on, permissive CORS for the frontend dev server and DEBUG-level ledger
logs written to ``logs/ledger_dev.log`` next to the console.
"""

from .base import *
import logging
from .utils import load_environment_config

config = load_environment_config("development")

ENVIRONMENT = "development"

DEBUG = True
SECRET_KEY = config("SECRET_KEY", default="django-insecure-team-ledger-dev")
ALLOWED_HOSTS = ["localhost", "127.0.0.1", "[::1]"]

# Frontend dev server
CORS_ALLOWED_ORIGINS = config(
    "CORS_ALLOWED_ORIGINS",
    default="http://localhost:5173,http://127.0.0.1:5173",
    cast=lambda value: [o.strip() for o in value.split(",") if o.strip()],
)

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": config("POSTGRES_DB", default="team_ledger"),
        "USER": config("POSTGRES_USER", default="postgres"),
        "PASSWORD": config("POSTGRES_PASSWORD", default=""),
        "HOST": config("DB_HOST", default="localhost"),
        "PORT": config("DB_PORT", default="5432"),
    }
}

# Overridable from .env.dev
LEDGER["CHANGE_REQUEST_TTL_HOURS"] = config("CHANGE_REQUEST_TTL_HOURS", default=72, cast=int)

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------

DEV_LOG_DIR = BASE_DIR / "logs"
DEV_LOG_DIR.mkdir(exist_ok=True)

LOGGING["handlers"]["console"]["level"] = "DEBUG"
LOGGING["handlers"]["ledger_dev_file"] = {
    "level": "DEBUG",
    "class": "logging.handlers.RotatingFileHandler",
    "filename": DEV_LOG_DIR / "ledger_dev.log",
    "maxBytes": 5 * 1024 * 1024,
    "backupCount": 3,
    "formatter": "structured",
    "encoding": "utf-8",
}

LOGGING["loggers"]["ledger"].update(level="DEBUG", handlers=["console", "ledger_dev_file"])
LOGGING["loggers"]["django"]["handlers"] = ["console", "ledger_dev_file"]

# Set to DEBUG to print every SQL statement
LOGGING["loggers"]["django.db.backends"]["level"] = config("DB_QUERY_LOGGING_LEVEL", default="INFO")

logging.getLogger(__name__).info(
    "Team Ledger settings loaded",
    extra={
        "environment": ENVIRONMENT,
        "database": DATABASES["default"]["NAME"],
        "change_request_ttl_hours": LEDGER["CHANGE_REQUEST_TTL_HOURS"],
        "action": "environment_startup",
        "component": "settings",
    },
)
