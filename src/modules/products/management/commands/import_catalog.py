from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from modules.core.exceptions import CatalogError
from modules.products.factories import build_catalog_services


class Command(BaseCommand):
    help = "Bulk-import products (and their hierarchy) from a CSV file."

    def add_arguments(self, parser):
        parser.add_argument("csv_path", help="Path to the CSV upload.")
        parser.add_argument(
            "--actor",
            default="system",
            help="User id recorded as creator of the imported rows.",
        )
        parser.add_argument(
            "--quiet-report",
            action="store_true",
            help="Only print the summary line, not the JSON report.",
        )

    def handle(self, *args, **options):
        services = build_catalog_services()
        self.stdout.write(f"Importing {options['csv_path']}...")
        try:
            with open(options["csv_path"], "rb") as handle:
                summary = services.products.bulk_import(
                    handle.read(), actor_id=options["actor"]
                )
        except OSError as exc:
            raise CommandError(f"Cannot read {options['csv_path']}: {exc}") from exc
        except CatalogError as exc:
            raise CommandError(exc.message) from exc

        if not options["quiet_report"]:
            self.stdout.write(summary.model_dump_json(by_alias=True, indent=2))
        for error in summary.errors:
            self.stderr.write(self.style.WARNING(error))
        style = self.style.SUCCESS if not summary.skipped_rows else self.style.WARNING
        self.stdout.write(style(summary.summary))
