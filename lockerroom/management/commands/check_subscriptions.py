from django.core.management.base import BaseCommand

from lockerroom.notifications import deactivate_expired_subscriptions, notify_expiring_subscriptions


class Command(BaseCommand):
    help = "Warn about expiring academy subscriptions and deactivate lapsed ones. Schedule every six hours."

    def handle(self, *args, **options):
        reminders = notify_expiring_subscriptions()
        expired = deactivate_expired_subscriptions()

        self.stdout.write(f"Expiry reminders created: {reminders}")
        for school in expired:
            self.stdout.write(self.style.WARNING(f"Deactivated {school.name} (ID: {school.id})"))
        self.stdout.write(self.style.SUCCESS(f"Subscription check complete; {len(expired)} academy(ies) deactivated"))
