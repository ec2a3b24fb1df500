from datetime import date

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError

from tenders.exceptions import UpstreamFetchError
from tenders.services.sync import months_back_window, sync_tenders


def parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise CommandError(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


class Command(BaseCommand):
    help = "Import OCDS releases from the eTenders API into the local tenders tables."

    def add_arguments(self, parser):
        parser.add_argument("--date-from", dest="date_from", help="First day to import (YYYY-MM-DD)")
        parser.add_argument("--date-to", dest="date_to", help="Last day to import (YYYY-MM-DD), defaults to today")
        parser.add_argument(
            "--months",
            type=int,
            default=settings.SYNC_BACKFILL_MONTHS,
            help="Months to go back when --date-from is omitted",
        )
        parser.add_argument("--page-size", type=int, default=settings.SYNC_BACKFILL_PAGE_SIZE)
        parser.add_argument("--batch-size", type=int, default=settings.SYNC_BATCH_SIZE)
        parser.add_argument("--document-batch-size", type=int, default=settings.SYNC_DOCUMENT_BATCH_SIZE)

    def handle(self, *args, **options):
        window_from, window_to = months_back_window(options["months"])
        date_from = parse_day(options["date_from"]) if options.get("date_from") else window_from
        date_to = parse_day(options["date_to"]) if options.get("date_to") else window_to
        if date_from > date_to:
            raise CommandError("--date-from cannot be later than --date-to")

        self.stdout.write(f"Fetching tenders from {date_from} to {date_to}...")
        try:
            result = sync_tenders(
                date_from=date_from,
                date_to=date_to,
                page_size=options["page_size"],
                batch_size=options["batch_size"],
                document_batch_size=options["document_batch_size"],
            )
        except UpstreamFetchError as exc:
            raise CommandError(f"Failed to sync tenders: {exc}") from exc
        except DatabaseError as exc:
            raise CommandError(f"Failed to store tenders: {exc}") from exc

        if result.releases == 0:
            self.stdout.write("No tenders to sync.")
            return
        if result.skipped:
            self.stdout.write(self.style.WARNING(f"Skipped {result.skipped} releases without ocid"))
        self.stdout.write(
            self.style.SUCCESS(f"Synced {result.tenders} tenders and {result.documents} documents")
        )
