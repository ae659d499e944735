from django.core.management.base import BaseCommand, CommandError
from inventory.selectors import ledger_mismatches


class Command(BaseCommand):
    help = "Report variants whose stock differs from the sum of their ledger movements"

    def add_arguments(self, parser):
        parser.add_argument("--fail", action="store_true", help="Exit non-zero when mismatches exist")

    def handle(self, *args, **options):
        mismatches = ledger_mismatches()
        for row in mismatches:
            self.stdout.write(
                self.style.WARNING(f"{row['sku']}: stock={row['stock']} ledger={row['ledger']} (variant {row['variant_id']})")
            )
        if mismatches and options["fail"]:
            raise CommandError(f"{len(mismatches)} variants do not reconcile.")
        self.stdout.write(self.style.SUCCESS(f"Checked ledger; {len(mismatches)} mismatches."))
