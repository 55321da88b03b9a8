import logging

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class LedgerConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    # Application name (Python path)
    name = "ledger"
    verbose_name = "Team ledger"

    def ready(self):
        logger.debug(
            "Ledger app ready",
            extra={
                "action": "app_ready",
                "component": "LedgerConfig",
            },
        )
