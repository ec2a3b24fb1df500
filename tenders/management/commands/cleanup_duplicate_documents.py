from django.core.management.base import BaseCommand
from django.db.models import Min

from tenders.models import TenderDocument


class Command(BaseCommand):
    help = "Delete duplicate tender documents, keeping the oldest row of each (tender, document id) pair."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Only report how many rows would be deleted")

    def handle(self, *args, **options):
        keep_ids = (
            TenderDocument.objects.order_by()
            .values("tender_id", "document_id")
            .annotate(keep_id=Min("id"))
            .values_list("keep_id", flat=True)
        )
        # NOT IN (SELECT MIN(id) ... GROUP BY tender_ocid, document_id), evaluated by the database
        duplicates = TenderDocument.objects.exclude(id__in=keep_ids)

        if options["dry_run"]:
            self.stdout.write(f"{duplicates.count()} duplicate documents would be deleted")
            return

        deleted, _ = duplicates.delete()
        remaining = TenderDocument.objects.count()
        self.stdout.write(self.style.SUCCESS(f"Cleaned up {deleted} duplicate documents"))
        self.stdout.write(f"Remaining documents: {remaining}")
