from django.conf import settings
from django.utils import timezone
from rest_framework import serializers

from .filters import (
    SORT_CHOICES,
    SORT_ORDER_CHOICES,
    SORT_PUBLISHED_DATE,
    STATUS_ACTIVE,
    STATUS_CHOICES,
    TenderFilters,
    TenderSearchParams,
)
from .models import TenderDocument


def isoformat(value):
    return value.isoformat() if value else None


class TenderSearchSerializer(serializers.Serializer):
    """Validates the query string of the tender list endpoint.

    Parameter names follow the upstream OCDS API and the dashboard URLs
    (camelCase, repeated keys for multi-valued filters).
    """

    keyword = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
    procuringEntity = serializers.ListField(child=serializers.CharField(), required=False)
    procurementCategory = serializers.ListField(child=serializers.CharField(), required=False)
    procurementMethod = serializers.ListField(child=serializers.CharField(), required=False)
    valueMin = serializers.FloatField(required=False)
    valueMax = serializers.FloatField(required=False)
    valueCurrency = serializers.CharField(required=False, allow_blank=True)
    closingDateFrom = serializers.DateField(required=False)
    closingDateTo = serializers.DateField(required=False)
    publishedDateFrom = serializers.DateField(required=False)
    publishedDateTo = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=STATUS_CHOICES, required=False, default=STATUS_ACTIVE)
    page = serializers.IntegerField(min_value=1, required=False, default=1)
    pageSize = serializers.IntegerField(min_value=1, required=False)
    sortBy = serializers.ChoiceField(choices=SORT_CHOICES, required=False, default=SORT_PUBLISHED_DATE)
    sortOrder = serializers.ChoiceField(choices=SORT_ORDER_CHOICES, required=False, default="desc")

    def to_internal_value(self, data):
        # QueryDict: repeated keys become lists for the multi-valued filters.
        if hasattr(data, "getlist"):
            flat = {key: data.get(key) for key in data.keys() if data.get(key) != ""}
            for key in ("procuringEntity", "procurementCategory", "procurementMethod"):
                if key in data:
                    flat[key] = [item for item in data.getlist(key) if item]
            data = flat
        return super().to_internal_value(data)

    def validate_pageSize(self, value):
        maximum = settings.TENDER_API_MAX_PAGE_SIZE
        if value > maximum:
            raise serializers.ValidationError(f"pageSize cannot exceed {maximum}.")
        return value

    def to_search_params(self) -> TenderSearchParams:
        data = self.validated_data
        filters = TenderFilters(
            keyword=data.get("keyword") or None,
            procuring_entity=data.get("procuringEntity") or [],
            procurement_category=data.get("procurementCategory") or [],
            procurement_method=data.get("procurementMethod") or [],
            value_min=data.get("valueMin"),
            value_max=data.get("valueMax"),
            value_currency=data.get("valueCurrency") or None,
            closing_date_from=data.get("closingDateFrom"),
            closing_date_to=data.get("closingDateTo"),
            published_date_from=data.get("publishedDateFrom"),
            published_date_to=data.get("publishedDateTo"),
            status=data.get("status"),
        )
        return TenderSearchParams(
            filters=filters,
            page=data.get("page", 1),
            limit=data.get("pageSize") or settings.TENDER_API_DEFAULT_PAGE_SIZE,
            sort_by=data.get("sortBy", SORT_PUBLISHED_DATE),
            sort_order=data.get("sortOrder", "desc"),
        )


class TenderDocumentSerializer(serializers.ModelSerializer):
    id = serializers.CharField(source="document_id", read_only=True)
    datePublished = serializers.DateTimeField(source="date_published", read_only=True)
    dateModified = serializers.DateTimeField(source="date_modified", read_only=True)

    class Meta:
        model = TenderDocument
        fields = ("id", "title", "description", "url", "format", "datePublished", "dateModified")
        read_only_fields = fields


class ReleaseSerializer(serializers.BaseSerializer):
    """Render a stored tender in the shape of an upstream OCDS release."""

    def to_representation(self, obj):
        now = self.context.get("now") or timezone.now()
        return {
            "ocid": obj.ocid,
            "id": obj.external_id,
            "date": isoformat(obj.published_date),
            "tender": {
                "id": obj.external_id,
                "title": obj.title,
                "description": obj.description,
                "status": obj.derived_status(now),
                "procurementMethod": obj.procurement_method,
                "procurementMethodDetails": obj.procurement_method_details,
                "mainProcurementCategory": obj.main_procurement_category,
                "tenderPeriod": {
                    "startDate": isoformat(obj.start_date),
                    "endDate": isoformat(obj.end_date),
                },
                "procuringEntity": obj.procuring_entity,
                "value": obj.value,
                "documents": TenderDocumentSerializer(obj.documents.all(), many=True).data,
            },
        }


class FilterOptionSerializer(serializers.Serializer):
    value = serializers.CharField()
    label = serializers.CharField()
    count = serializers.IntegerField()


class FilterStatsSerializer(serializers.Serializer):
    procuringEntities = FilterOptionSerializer(source="procuring_entities", many=True)
    procurementCategories = FilterOptionSerializer(source="procurement_categories", many=True)
    procurementMethods = FilterOptionSerializer(source="procurement_methods", many=True)
    totalCount = serializers.IntegerField(source="total_count")
    activeCount = serializers.IntegerField(source="active_count")
    closedCount = serializers.IntegerField(source="closed_count")
