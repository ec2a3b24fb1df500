from dataclasses import dataclass
from typing import Optional

from django.db import models
from django.utils import timezone


@dataclass(frozen=True)
class ProcuringEntity:
    """Typed view over the `procuring_entity` JSON column."""

    id: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_json(cls, payload):
        if not payload:
            return None
        return cls(id=payload.get("id"), name=payload.get("name"))


@dataclass(frozen=True)
class TenderValue:
    """Typed view over the `value` JSON column."""

    amount: Optional[float] = None
    currency: Optional[str] = None

    @classmethod
    def from_json(cls, payload):
        if not payload:
            return None
        return cls(amount=payload.get("amount"), currency=payload.get("currency"))


class Tender(models.Model):
    """One procurement opportunity imported from the eTenders OCDS API.

    `ocid` is the natural key assigned upstream; re-importing a release with
    the same ocid updates the existing row.
    """

    STATUS_ACTIVE = "active"
    STATUS_CLOSED = "closed"

    ocid = models.TextField(primary_key=True)
    external_id = models.TextField(db_column="id", null=True, blank=True)
    title = models.TextField()
    description = models.TextField(null=True, blank=True)
    procurement_method = models.TextField(null=True, blank=True)
    procurement_method_details = models.TextField(null=True, blank=True)
    main_procurement_category = models.TextField(null=True, blank=True)
    status = models.TextField(null=True, blank=True)
    published_date = models.DateTimeField(null=True, blank=True)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    procuring_entity = models.JSONField(null=True, blank=True)
    value = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tenders"
        ordering = ["-published_date", "ocid"]

    def __str__(self) -> str:
        return self.title

    @property
    def entity(self):
        return ProcuringEntity.from_json(self.procuring_entity)

    @property
    def tender_value(self):
        return TenderValue.from_json(self.value)

    def derived_status(self, now=None):
        """Return the explicit status if set, otherwise derive it from `end_date`."""
        if self.status:
            return self.status
        if self.end_date is None:
            return None
        now = now or timezone.now()
        return self.STATUS_ACTIVE if self.end_date >= now else self.STATUS_CLOSED


class TenderDocument(models.Model):
    """A document attached to a tender (notice, bid pack, addendum...)."""

    tender = models.ForeignKey(
        Tender,
        on_delete=models.CASCADE,
        db_column="tender_ocid",
        related_name="documents",
    )
    document_id = models.TextField(null=True, blank=True)
    title = models.TextField(null=True, blank=True)
    description = models.TextField(null=True, blank=True)
    url = models.TextField(null=True, blank=True)
    format = models.TextField(null=True, blank=True)
    date_published = models.DateTimeField(null=True, blank=True)
    date_modified = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "tender_documents"
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["tender", "document_id"],
                name="tender_documents_tender_ocid_document_id_key",
            ),
        ]

    def __str__(self) -> str:
        return self.title or self.document_id or f"Document {self.pk}"
