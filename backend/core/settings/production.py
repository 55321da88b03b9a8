# flake8: noqa
"""
Production settings for Team Ledger.

Every secret comes from ``.env.production`` or the process environment.
Ledger and Django logs are emitted as JSON so denied mutations, role changes
and request resolutions can be searched by ``action`` and ``team_id``.
"""

from .base import *
import logging
from .utils import load_environment_config

config = load_environment_config("production")

ENVIRONMENT = "production"


def _csv(value):
    return [item.strip() for item in value.split(",") if item.strip()]


DEBUG = False
SECRET_KEY = config("SECRET_KEY")
ALLOWED_HOSTS = config("ALLOWED_HOSTS", default="", cast=_csv)
CORS_ALLOWED_ORIGINS = config("CORS_ALLOWED_ORIGINS", default="", cast=_csv)
CSRF_TRUSTED_ORIGINS = CORS_ALLOWED_ORIGINS

SECURE_SSL_REDIRECT = config("SECURE_SSL_REDIRECT", default=True, cast=bool)
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_HSTS_SECONDS = config("SECURE_HSTS_SECONDS", default=3600, cast=int)
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": config("POSTGRES_DB"),
        "USER": config("POSTGRES_USER"),
        "PASSWORD": config("POSTGRES_PASSWORD"),
        "HOST": config("DB_HOST"),
        "PORT": config("DB_PORT", default="5432"),
        "CONN_MAX_AGE": config("DB_CONN_MAX_AGE", default=60, cast=int),
        "OPTIONS": {"connect_timeout": 5},
    }
}

LEDGER["CHANGE_REQUEST_TTL_HOURS"] = config("CHANGE_REQUEST_TTL_HOURS", default=72, cast=int)

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------

LOG_DIR = config("LOG_DIR", default="/var/log/team-ledger")
os.makedirs(LOG_DIR, exist_ok=True)


def _json_file_handler(filename, level, max_mb):
    return {
        "level": level,
        "class": "logging.handlers.RotatingFileHandler",
        "filename": os.path.join(LOG_DIR, filename),
        "maxBytes": max_mb * 1024 * 1024,
        "backupCount": 10,
        "formatter": "json",
        "encoding": "utf-8",
    }


LOGGING["handlers"]["console"]["formatter"] = "json"
LOGGING["handlers"].update(
    {
        "ledger_file": _json_file_handler("ledger.log", "INFO", 100),
        "error_file": _json_file_handler("errors.log", "ERROR", 50),
        # Denied mutations and rank violations are logged at WARNING
        "audit_file": _json_file_handler("audit.log", "WARNING", 50),
    }
)

LOGGING["loggers"]["ledger"]["handlers"] = ["console", "ledger_file", "error_file", "audit_file"]
LOGGING["loggers"]["django"]["handlers"] = ["console", "error_file"]
LOGGING["loggers"]["django.request"]["handlers"] = ["console", "error_file"]
LOGGING["loggers"]["django.security"]["handlers"] = ["audit_file"]
LOGGING["loggers"]["django.db.backends"]["level"] = "ERROR"

logging.getLogger(__name__).info(
    "Team Ledger settings loaded",
    extra={
        "environment": ENVIRONMENT,
        "allowed_hosts": ALLOWED_HOSTS,
        "change_request_ttl_hours": LEDGER["CHANGE_REQUEST_TTL_HOURS"],
        "action": "environment_startup",
        "component": "settings",
    },
)
