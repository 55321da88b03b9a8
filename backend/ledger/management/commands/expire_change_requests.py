import logging

from django.core.management.base import BaseCommand
from django.utils import timezone

from ledger.services.change_request_service import ChangeRequestService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Expire pending change requests past their lifetime and unlock their transactions"

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only report how many requests would expire",
        )

    def handle(self, *args, **options):
        now = timezone.now()
        dry_run = options["dry_run"]

        count = ChangeRequestService.expire_stale_requests(now=now, dry_run=dry_run)

        if dry_run:
            self.stdout.write(f"{count} pending change request(s) would expire")
            return

        logger.info(
            "Change request expiry sweep finished",
            extra={
                "expired_count": count,
                "action": "expire_change_requests_command",
                "component": "expire_change_requests",
            },
        )
        self.stdout.write(self.style.SUCCESS(f"Expired {count} change request(s)"))
