from __future__ import annotations

from django.core.management.base import BaseCommand

from modules.products.csv_import import template_csv


class Command(BaseCommand):
    help = "Print the bulk-upload CSV template with sample rows."

    def add_arguments(self, parser):
        parser.add_argument(
            "--output",
            help="Write the template to this file instead of stdout.",
        )

    def handle(self, *args, **options):
        content = template_csv()
        if options["output"]:
            with open(options["output"], "w", encoding="utf-8", newline="") as handle:
                handle.write(content)
            self.stdout.write(self.style.SUCCESS(f"Template written to {options['output']}"))
            return
        self.stdout.write(content, ending="")
