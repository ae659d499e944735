from django.core.management.base import BaseCommand
from notifications.services import purge_expired_notifications


class Command(BaseCommand):
    help = "Delete expired notifications and read notifications past the retention window"

    def handle(self, *args, **options):
        count = purge_expired_notifications()
        self.stdout.write(self.style.SUCCESS(f"Deleted {count} notifications."))
