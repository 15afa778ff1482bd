from __future__ import annotations

from django.core.management.base import BaseCommand  # type: ignore

from apps.holds.application.command_handlers import build_handlers


class Command(BaseCommand):
    help = "Expires active holds whose TTL has passed and returns their rooms to inventory"

    def add_arguments(self, parser):  # type: ignore
        parser.add_argument("--batch-size", type=int, default=None, help="Maximum holds to process")
        parser.add_argument("--database", default="default", help="Database alias to sweep")

    def handle(self, *args, **options):  # type: ignore
        sweeper = build_handlers(using=options["database"])["sweeper"]
        stats = sweeper.sweep(batch_size=options["batch_size"])

        self.stdout.write(
            f"Processed {stats['processed']} hold(s): "
            f"{stats['expired']} expired, {stats['skipped']} skipped, {stats['failed']} failed"
        )
        if stats["failed"]:
            self.stdout.write(self.style.WARNING("Some holds could not be expired, see logs"))
        else:
            self.stdout.write(self.style.SUCCESS("Done"))
