"""Tender search: filter criteria, query compilation and facet statistics.

`TenderQueryBuilder` turns a `TenderFilters` value into a list of `Q`
predicates (one per active filter group) and folds them into a single AND.
The page query and the count query of `build_tender_query` are both built
from that same folded predicate.
"""
import operator
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import reduce
from typing import List, Optional

from django.db.models import Count, F, FloatField, Q
from django.db.models.fields.json import KeyTextTransform
from django.db.models.functions import Cast
from django.http import QueryDict
from django.utils import timezone

from tenders.models import Tender

STATUS_ACTIVE = "active"
STATUS_CLOSED = "closed"
STATUS_ALL = "all"
STATUS_CHOICES = (STATUS_ACTIVE, STATUS_CLOSED, STATUS_ALL)

SORT_PUBLISHED_DATE = "publishedDate"
SORT_END_DATE = "endDate"
SORT_VALUE = "value"
SORT_CHOICES = (SORT_PUBLISHED_DATE, SORT_END_DATE, SORT_VALUE)
SORT_ORDER_CHOICES = ("asc", "desc")

SORT_COLUMNS = {
    SORT_PUBLISHED_DATE: "published_date",
    SORT_END_DATE: "end_date",
}


@dataclass
class TenderFilters:
    keyword: Optional[str] = None
    procuring_entity: List[str] = field(default_factory=list)
    procurement_category: List[str] = field(default_factory=list)
    procurement_method: List[str] = field(default_factory=list)
    value_min: Optional[float] = None
    value_max: Optional[float] = None
    value_currency: Optional[str] = None
    # date bounds match whole calendar days, datetime bounds match exactly
    closing_date_from: Optional[date] = None
    closing_date_to: Optional[date] = None
    published_date_from: Optional[date] = None
    published_date_to: Optional[date] = None
    status: Optional[str] = None

    def to_query_params(self) -> QueryDict:
        """Serialize back to the query parameters understood by the tender list API."""
        params = QueryDict(mutable=True)
        if self.keyword:
            params["keyword"] = self.keyword
        if self.procuring_entity:
            params.setlist("procuringEntity", list(self.procuring_entity))
        if self.procurement_category:
            params.setlist("procurementCategory", list(self.procurement_category))
        if self.procurement_method:
            params.setlist("procurementMethod", list(self.procurement_method))
        if self.value_min is not None:
            params["valueMin"] = str(self.value_min)
        if self.value_max is not None:
            params["valueMax"] = str(self.value_max)
        if self.value_currency:
            params["valueCurrency"] = self.value_currency
        for key, bound in (
            ("closingDateFrom", self.closing_date_from),
            ("closingDateTo", self.closing_date_to),
            ("publishedDateFrom", self.published_date_from),
            ("publishedDateTo", self.published_date_to),
        ):
            if bound:
                params[key] = bound.isoformat()[:10]
        if self.status and self.status != STATUS_ALL:
            params["status"] = self.status
        return params


@dataclass
class TenderSearchParams:
    filters: TenderFilters
    page: int = 1
    limit: int = 20
    sort_by: str = SORT_PUBLISHED_DATE
    sort_order: str = "desc"


@dataclass
class TenderPage:
    tenders: List[Tender]
    total_count: int
    current_page: int


@dataclass
class FilterOption:
    value: str
    label: str
    count: int


@dataclass
class FilterStats:
    procuring_entities: List[FilterOption]
    procurement_categories: List[FilterOption]
    procurement_methods: List[FilterOption]
    total_count: int
    active_count: int
    closed_count: int


def value_amount():
    """`value->>'amount'` as a number, NULL when the tender has no amount."""
    return Cast(KeyTextTransform("amount", "value"), FloatField())


def any_of(conditions) -> Q:
    return reduce(operator.or_, conditions)


def date_bound(column, lookup, bound) -> Q:
    if isinstance(bound, datetime):
        return Q(**{f"{column}__{lookup}": bound})
    return Q(**{f"{column}__date__{lookup}": bound})


def status_condition(status, now) -> Optional[Q]:
    # Both sides are inclusive: a tender closing exactly at `now` is active and closed.
    if status == STATUS_ACTIVE:
        return Q(end_date__gte=now) | Q(status=STATUS_ACTIVE)
    if status == STATUS_CLOSED:
        return Q(end_date__lte=now) | Q(status=STATUS_CLOSED)
    return None


class TenderQueryBuilder:
    """Compile `TenderFilters` into predicates over the `tenders` table.

    `now` is captured once so that every query built from the same builder
    uses the same status boundary.
    """

    def __init__(self, filters: TenderFilters, now: Optional[datetime] = None):
        self.filters = filters
        self.now = now or timezone.now()
        self.conditions: List[Q] = []
        self._compile()

    def _add(self, condition):
        if condition is not None:
            self.conditions.append(condition)

    def _compile(self):
        filters = self.filters

        if filters.keyword:
            self._add(Q(title__icontains=filters.keyword) | Q(description__icontains=filters.keyword))

        if filters.procuring_entity:
            self._add(any_of(Q(procuring_entity__name__icontains=entity) for entity in filters.procuring_entity))

        if filters.procurement_category:
            self._add(
                any_of(Q(main_procurement_category__icontains=category) for category in filters.procurement_category)
            )

        if filters.procurement_method:
            self._add(
                any_of(
                    Q(procurement_method__icontains=method) | Q(procurement_method_details__icontains=method)
                    for method in filters.procurement_method
                )
            )

        if filters.value_min is not None or filters.value_max is not None:
            value_conditions = []
            if filters.value_min is not None:
                value_conditions.append(Q(value_amount__gte=filters.value_min))
            if filters.value_max is not None:
                value_conditions.append(Q(value_amount__lte=filters.value_max))
            if filters.value_currency:
                value_conditions.append(Q(value__currency=filters.value_currency))
            self._add(reduce(operator.and_, value_conditions))

        if filters.closing_date_from:
            self._add(date_bound("end_date", "gte", filters.closing_date_from))
        if filters.closing_date_to:
            self._add(date_bound("end_date", "lte", filters.closing_date_to))

        if filters.published_date_from:
            self._add(date_bound("published_date", "gte", filters.published_date_from))
        if filters.published_date_to:
            self._add(date_bound("published_date", "lte", filters.published_date_to))

        self._add(status_condition(filters.status, self.now))

    def where(self) -> Q:
        """AND of every compiled predicate; an empty Q when no filter is set."""
        return reduce(operator.and_, self.conditions, Q())

    def queryset(self):
        return Tender.objects.alias(value_amount=value_amount()).filter(self.where())

    @staticmethod
    def ordering(sort_by=SORT_PUBLISHED_DATE, sort_order="desc"):
        descending = sort_order != "asc"
        if sort_by == SORT_VALUE:
            amount = F("value_amount")
            # tenders without an amount go last in both directions
            key = amount.desc(nulls_last=True) if descending else amount.asc(nulls_last=True)
        else:
            column = F(SORT_COLUMNS.get(sort_by, "published_date"))
            key = column.desc() if descending else column.asc()
        return [key, "ocid"]


def build_tender_query(params: TenderSearchParams, now: Optional[datetime] = None) -> TenderPage:
    """Return one page of tenders matching `params` and the total match count.

    `params.limit` is not capped here; callers enforce their own maximum.
    """
    builder = TenderQueryBuilder(params.filters, now=now)
    queryset = builder.queryset()
    offset = (params.page - 1) * params.limit

    page_qs = (
        queryset.order_by(*builder.ordering(params.sort_by, params.sort_order))
        .prefetch_related("documents")[offset:offset + params.limit]
    )
    return TenderPage(
        tenders=list(page_qs),
        total_count=queryset.count(),
        current_page=params.page,
    )


def _facet(queryset, expression, limit) -> List[FilterOption]:
    rows = (
        queryset.annotate(facet=expression)
        .values("facet")
        .annotate(count=Count("ocid"))
        .order_by("-count", "facet")[:limit]
    )
    return [
        FilterOption(value=row["facet"], label=row["facet"], count=row["count"])
        for row in rows
        if row["facet"]
    ]


def get_filter_stats(now: Optional[datetime] = None, limit: int = 50) -> FilterStats:
    """Facet values with counts over the whole table, ignoring any active filter."""
    now = now or timezone.now()
    tenders = Tender.objects.all()
    return FilterStats(
        procuring_entities=_facet(
            tenders.filter(procuring_entity__isnull=False),
            KeyTextTransform("name", "procuring_entity"),
            limit,
        ),
        procurement_categories=_facet(
            tenders.filter(main_procurement_category__isnull=False),
            F("main_procurement_category"),
            limit,
        ),
        procurement_methods=_facet(
            tenders.filter(procurement_method_details__isnull=False),
            F("procurement_method_details"),
            limit,
        ),
        total_count=tenders.count(),
        active_count=tenders.filter(status_condition(STATUS_ACTIVE, now)).count(),
        closed_count=tenders.filter(status_condition(STATUS_CLOSED, now)).count(),
    )
