"""Management command to cleanup old idempotency records."""

from django.core.management.base import BaseCommand

from stampman.models import IdempotencyRecord


class Command(BaseCommand):
    help = "Remove idempotency records older than IDEMPOTENCY_CLEANUP_DAYS"

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help="Override IDEMPOTENCY_CLEANUP_DAYS setting",
        )

    def handle(self, *args, **options):
        deleted_count, _ = IdempotencyRecord.cleanup_old_records(days=options["days"])
        self.stdout.write(
            self.style.SUCCESS(f"Deleted {deleted_count} old idempotency records.")
        )
