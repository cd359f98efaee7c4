"""Management command to schedule days_inactive campaign messages.

Meant to run once a day (cron). Re-running on the same day schedules nothing
new: every firing is deduplicated by its event id.
"""

from django.core.management.base import BaseCommand

from stampman.services import campaigns


class Command(BaseCommand):
    help = "Evaluate days_inactive campaigns for every active business"

    def handle(self, *args, **options):
        scheduled = campaigns.scan_inactive()
        self.stdout.write(self.style.SUCCESS(f"Scheduled {scheduled} inactivity messages."))
