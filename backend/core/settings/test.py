# flake8: noqa
"""
Test settings for the Team Ledger application.

In-memory SQLite, a fast password hasher and quiet logging so the suite runs
without external services.
"""

from .base import *

ENVIRONMENT = "test"

DEBUG = False
SECRET_KEY = "django-insecure-test-key"
ALLOWED_HOSTS = ["testserver", "localhost"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

LEDGER = {
    **LEDGER,
    "CHANGE_REQUEST_TTL_HOURS": 72,
    "TRANSACTION_PAGE_SIZE": 20,
    "MAX_TRANSACTION_PAGE_SIZE": 100,
}

LOGGING["handlers"]["console"]["level"] = "CRITICAL"
for logger_name in ["django", "ledger"]:
    LOGGING["loggers"][logger_name]["level"] = "WARNING"
