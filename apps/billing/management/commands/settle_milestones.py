from django.core.management.base import BaseCommand

from apps.billing.settlement import MilestoneSettlementSweep


class Command(BaseCommand):
    help = "Release or refund held milestone payments that are due."

    def add_arguments(self, parser):
        parser.add_argument("--limit", type=int, default=None)

    def handle(self, *args, **options):
        sweep = MilestoneSettlementSweep(limit=options.get("limit"))
        summary = sweep.run()

        self.stdout.write(
            self.style.SUCCESS(
                f"Scanned up to {sweep.limit} held payments. "
                f"Released {summary.released}, refunded {summary.refunded}, skipped {summary.skipped}."
            )
        )
