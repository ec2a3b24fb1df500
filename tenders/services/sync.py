"""Import OCDS releases from the eTenders API into the `tenders` tables.

Exposes:
 - sync_tenders(date_from, date_to, ...) -> SyncResult
 - release_to_tender(release) -> unsaved Tender (or None without ocid)
 - release_documents(release) -> unsaved TenderDocument rows
 - upsert_tenders(rows) / upsert_documents(rows) -> processed count
 - replace_unkeyed_documents(ocids, rows) -> inserted count

Tenders and documents are written in fixed-size batches with
INSERT ... ON CONFLICT DO UPDATE. Each batch commits on its own: a failure
aborts the remaining batches and leaves the earlier ones in place.
"""
import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from itertools import islice
from typing import Iterator, List, Optional, Sequence

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from tenders.models import Tender, TenderDocument
from tenders.services.ocds import OCDSClient

logger = logging.getLogger(__name__)

UNTITLED_TENDER = "Untitled Tender"

# Only these columns are refreshed when an ocid is seen again; every other
# tender column keeps the value from the first import.
TENDER_UPDATE_FIELDS = ["title", "description", "end_date", "value", "updated_at"]

DOCUMENT_UPDATE_FIELDS = [
    "title",
    "description",
    "url",
    "format",
    "date_published",
    "date_modified",
]


@dataclass
class SyncResult:
    date_from: date
    date_to: date
    releases: int = 0
    tenders: int = 0
    documents: int = 0
    skipped: int = 0


def chunked(seq: Sequence, size: int) -> Iterator[List]:
    seq_iter = iter(seq)
    while True:
        block = list(islice(seq_iter, size))
        if not block:
            break
        yield block


def subtract_months(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def default_window(days: int = 1, today: Optional[date] = None):
    """Window used by the scheduled sync: yesterday through today."""
    today = today or timezone.localdate()
    return today - timedelta(days=days), today


def months_back_window(months: int = 6, today: Optional[date] = None):
    """Window used for a backfill: the last `months` months through today."""
    today = today or timezone.localdate()
    return subtract_months(today, months), today


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an OCDS timestamp (ISO datetime or bare date); None when unusable."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = parse_datetime(value)
    except ValueError:
        return None
    if parsed is None:
        try:
            day = parse_date(value)
        except ValueError:
            return None
        if day is None:
            return None
        parsed = datetime.combine(day, time.min)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, timezone.get_default_timezone())
    return parsed


def release_to_tender(release: dict) -> Optional[Tender]:
    ocid = release.get("ocid")
    if not ocid:
        return None
    tender = release.get("tender") or {}
    period = tender.get("tenderPeriod") or {}
    return Tender(
        ocid=ocid,
        external_id=tender.get("id"),
        title=tender.get("title") or UNTITLED_TENDER,
        description=tender.get("description"),
        procurement_method=tender.get("procurementMethod"),
        procurement_method_details=tender.get("procurementMethodDetails"),
        main_procurement_category=tender.get("mainProcurementCategory"),
        published_date=parse_timestamp(release.get("date")),
        start_date=parse_timestamp(period.get("startDate")),
        end_date=parse_timestamp(period.get("endDate")),
        procuring_entity=tender.get("procuringEntity") or release.get("buyer") or None,
        value=tender.get("value") or None,
    )


def release_documents(release: dict) -> List[TenderDocument]:
    ocid = release.get("ocid")
    if not ocid:
        return []
    documents = (release.get("tender") or {}).get("documents") or []
    return [
        TenderDocument(
            tender_id=ocid,
            document_id=doc.get("id"),
            title=doc.get("title"),
            description=doc.get("description"),
            url=doc.get("url"),
            format=doc.get("format"),
            date_published=parse_timestamp(doc.get("datePublished")),
            date_modified=parse_timestamp(doc.get("dateModified")),
        )
        for doc in documents
        if isinstance(doc, dict)
    ]


def collect_rows(releases):
    """Map releases to rows, dropping unkeyed releases and in-run duplicates.

    A single INSERT ... ON CONFLICT statement cannot touch the same row twice,
    so the last occurrence of an ocid (or of an (ocid, document id) pair) wins.
    Documents without an id cannot conflict; they are returned separately.
    """
    tenders = {}
    documents = {}
    unkeyed_documents = []
    skipped = 0
    for index, release in enumerate(releases):
        tender = release_to_tender(release)
        if tender is None:
            skipped += 1
            logger.warning("Skipping release #%s without ocid (id=%s)", index, release.get("id"))
            continue
        tenders[tender.ocid] = tender
        for document in release_documents(release):
            if document.document_id is None:
                unkeyed_documents.append(document)
            else:
                documents[(document.tender_id, document.document_id)] = document
    return list(tenders.values()), list(documents.values()), unkeyed_documents, skipped


def upsert_tenders(rows: Sequence[Tender], batch_size: Optional[int] = None) -> int:
    batch_size = batch_size or settings.SYNC_BATCH_SIZE
    processed = 0
    for batch in chunked(rows, batch_size):
        Tender.objects.bulk_create(
            batch,
            update_conflicts=True,
            unique_fields=["ocid"],
            update_fields=TENDER_UPDATE_FIELDS,
        )
        processed += len(batch)
        logger.info("Processed %s/%s tenders...", processed, len(rows))
    return processed


def upsert_documents(rows: Sequence[TenderDocument], batch_size: Optional[int] = None) -> int:
    batch_size = batch_size or settings.SYNC_DOCUMENT_BATCH_SIZE
    processed = 0
    for batch in chunked(rows, batch_size):
        TenderDocument.objects.bulk_create(
            batch,
            update_conflicts=True,
            unique_fields=["tender", "document_id"],
            update_fields=DOCUMENT_UPDATE_FIELDS,
        )
        processed += len(batch)
        logger.info("Processed %s/%s documents...", processed, len(rows))
    return processed


def replace_unkeyed_documents(
    tender_ocids: Sequence[str],
    rows: Sequence[TenderDocument],
    batch_size: Optional[int] = None,
) -> int:
    """Swap the id-less documents of the synced tenders for the fresh ones.

    A NULL document id never conflicts, so re-inserting would add a copy of
    every such document on each run.
    """
    batch_size = batch_size or settings.SYNC_DOCUMENT_BATCH_SIZE
    removed = 0
    for ocids in chunked(tender_ocids, batch_size):
        deleted, _ = TenderDocument.objects.filter(tender_id__in=ocids, document_id__isnull=True).delete()
        removed += deleted
    inserted = 0
    for batch in chunked(rows, batch_size):
        TenderDocument.objects.bulk_create(batch)
        inserted += len(batch)
    if removed or inserted:
        logger.info("Replaced %s documents without id by %s", removed, inserted)
    return inserted


def sync_tenders(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page_size: Optional[int] = None,
    client: Optional[OCDSClient] = None,
    batch_size: Optional[int] = None,
    document_batch_size: Optional[int] = None,
) -> SyncResult:
    """Fetch one window of releases and upsert them with their documents.

    Raises:
        UpstreamFetchError: the OCDS API answered with a non-2xx status.
        django.db.DatabaseError: a batch failed; earlier batches stay committed.
    """
    if date_from is None or date_to is None:
        window_from, window_to = default_window()
        date_from = date_from or window_from
        date_to = date_to or window_to
    page_size = page_size or settings.SYNC_CRON_PAGE_SIZE
    client = client or OCDSClient()

    logger.info("Fetching tenders from %s to %s...", date_from, date_to)
    releases = client.fetch_releases(date_from, date_to, page_size)
    logger.info("Found %s releases to sync", len(releases))

    result = SyncResult(date_from=date_from, date_to=date_to, releases=len(releases))
    if not releases:
        return result

    tenders, documents, unkeyed_documents, skipped = collect_rows(releases)
    result.skipped = skipped
    result.tenders = upsert_tenders(tenders, batch_size)
    result.documents = upsert_documents(documents, document_batch_size)
    result.documents += replace_unkeyed_documents(
        [tender.ocid for tender in tenders], unkeyed_documents, document_batch_size
    )

    logger.info(
        "Synced %s tenders and %s documents (%s releases skipped)",
        result.tenders, result.documents, result.skipped,
    )
    return result
