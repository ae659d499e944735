from cart.services import purge_stale_guest_carts
from django.core.management.base import BaseCommand


class Command(BaseCommand):
    help = "Delete guest carts that have not changed within CART_GUEST_TTL_DAYS"

    def add_arguments(self, parser):
        parser.add_argument("--days", type=int, default=None, help="Override the configured TTL in days")

    def handle(self, *args, **options):
        count = purge_stale_guest_carts(older_than_days=options["days"])
        self.stdout.write(self.style.SUCCESS(f"Deleted {count} stale guest carts."))
