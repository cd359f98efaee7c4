"""Management command to deliver pending campaign messages."""

from django.core.management.base import BaseCommand, CommandError

from stampman.exceptions import StampmanError
from stampman.services import campaigns


class Command(BaseCommand):
    help = "Send pending campaign messages through MESSAGING_BACKEND"

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=None,
            help="Override DISPATCH_BATCH_SIZE setting",
        )

    def handle(self, *args, **options):
        try:
            report = campaigns.dispatch_pending(limit=options["limit"])
        except StampmanError as exc:
            raise CommandError(str(exc)) from exc

        style = self.style.SUCCESS if not report.failed else self.style.WARNING
        self.stdout.write(style(f"Sent {report.sent} messages, {report.failed} failed."))
