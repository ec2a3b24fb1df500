from datetime import date, datetime, timedelta, timezone as dt_timezone

import pytest

from tenders.filters import (
	STATUS_ACTIVE,
	STATUS_ALL,
	STATUS_CLOSED,
	SORT_END_DATE,
	SORT_VALUE,
	TenderFilters,
	TenderQueryBuilder,
	TenderSearchParams,
	build_tender_query,
	get_filter_stats,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=dt_timezone.utc)


def search(filters=None, now=NOW, **params):
	return build_tender_query(TenderSearchParams(filters=filters or TenderFilters(), **params), now=now)


def ocids(page):
	return [tender.ocid for tender in page.tenders]


@pytest.mark.django_db
def test_empty_filters_match_every_tender(make_tender):
	for _ in range(3):
		make_tender()

	page = search()

	assert page.total_count == 3
	assert len(page.tenders) == 3
	assert page.current_page == 1
	assert TenderQueryBuilder(TenderFilters()).conditions == []


@pytest.mark.django_db
def test_keyword_matches_title_or_description_case_insensitively(make_tender):
	by_title = make_tender(title="Construction of clinic")
	by_description = make_tender(title="Phase 2", description="CONSTRUCTION works in Soweto")
	make_tender(title="Catering services", description="Meals for learners")

	page = search(TenderFilters(keyword="construction"))

	assert sorted(ocids(page)) == sorted([by_title.ocid, by_description.ocid])
	assert page.total_count == 2


@pytest.mark.django_db
def test_value_range_is_inclusive_and_excludes_missing_amounts(make_tender):
	make_tender(value={"amount": 100, "currency": "ZAR"})
	middle = make_tender(value={"amount": 500, "currency": "ZAR"})
	make_tender(value={"amount": 1000, "currency": "ZAR"})
	make_tender(value=None)

	page = search(TenderFilters(value_min=200, value_max=800))

	assert ocids(page) == [middle.ocid]

	page = search(TenderFilters(value_min=500, value_max=500))
	assert ocids(page) == [middle.ocid]


@pytest.mark.django_db
def test_inverted_value_range_matches_nothing(make_tender):
	make_tender(value={"amount": 500, "currency": "ZAR"})

	page = search(TenderFilters(value_min=800, value_max=200))

	assert page.total_count == 0
	assert page.tenders == []


@pytest.mark.django_db
def test_currency_only_applies_with_a_value_bound(make_tender):
	rand = make_tender(value={"amount": 500, "currency": "ZAR"})
	dollar = make_tender(value={"amount": 500, "currency": "USD"})

	assert search(TenderFilters(value_currency="ZAR")).total_count == 2
	assert ocids(search(TenderFilters(value_min=1, value_currency="ZAR"))) == [rand.ocid]
	assert ocids(search(TenderFilters(value_max=1000, value_currency="USD"))) == [dollar.ocid]


@pytest.mark.django_db
def test_sort_by_value_puts_missing_amounts_last_in_both_directions(make_tender):
	small = make_tender(value={"amount": 100})
	large = make_tender(value={"amount": 1000})
	unknown = make_tender(value=None)
	middle = make_tender(value={"amount": 500})

	descending = search(sort_by=SORT_VALUE, sort_order="desc")
	ascending = search(sort_by=SORT_VALUE, sort_order="asc")

	assert ocids(descending) == [large.ocid, middle.ocid, small.ocid, unknown.ocid]
	assert ocids(ascending) == [small.ocid, middle.ocid, large.ocid, unknown.ocid]


@pytest.mark.django_db
def test_default_sort_is_newest_published_first(make_tender):
	old = make_tender(published_date=NOW - timedelta(days=10))
	new = make_tender(published_date=NOW - timedelta(days=1))

	assert ocids(search()) == [new.ocid, old.ocid]
	assert ocids(search(sort_order="asc")) == [old.ocid, new.ocid]


@pytest.mark.django_db
def test_sort_by_closing_date(make_tender):
	later = make_tender(end_date=NOW + timedelta(days=20))
	sooner = make_tender(end_date=NOW + timedelta(days=2))

	assert ocids(search(sort_by=SORT_END_DATE, sort_order="asc")) == [sooner.ocid, later.ocid]


@pytest.mark.django_db
def test_status_boundary_counts_as_active_and_closed(make_tender):
	boundary = make_tender(end_date=NOW)
	open_tender = make_tender(end_date=NOW + timedelta(days=1))
	past = make_tender(end_date=NOW - timedelta(days=1))

	active = search(TenderFilters(status=STATUS_ACTIVE))
	closed = search(TenderFilters(status=STATUS_CLOSED))

	assert sorted(ocids(active)) == sorted([boundary.ocid, open_tender.ocid])
	assert sorted(ocids(closed)) == sorted([boundary.ocid, past.ocid])


@pytest.mark.django_db
def test_explicit_status_matches_without_end_date(make_tender):
	flagged = make_tender(status="active")
	make_tender()

	assert ocids(search(TenderFilters(status=STATUS_ACTIVE))) == [flagged.ocid]
	assert search(TenderFilters(status=STATUS_ALL)).total_count == 2
	assert search(TenderFilters(status="archived")).total_count == 2


@pytest.mark.django_db
def test_list_filters_are_or_within_a_group_and_and_across_groups(make_tender):
	cape_town = make_tender(
		procuring_entity={"name": "City of Cape Town"},
		main_procurement_category="works",
		procurement_method="open",
	)
	joburg = make_tender(
		procuring_entity={"name": "City of Johannesburg"},
		main_procurement_category="services",
		procurement_method="limited",
		procurement_method_details="Request for Quotation",
	)
	make_tender(procuring_entity={"name": "Eskom"}, main_procurement_category="goods")

	entities = search(TenderFilters(procuring_entity=["cape town", "johannesburg"]))
	assert sorted(ocids(entities)) == sorted([cape_town.ocid, joburg.ocid])

	categories = search(TenderFilters(procurement_category=["WORKS"]))
	assert ocids(categories) == [cape_town.ocid]

	by_details = search(TenderFilters(procurement_method=["quotation"]))
	assert ocids(by_details) == [joburg.ocid]

	combined = search(TenderFilters(procuring_entity=["city of"], procurement_category=["services"]))
	assert ocids(combined) == [joburg.ocid]


@pytest.mark.django_db
def test_closing_date_window_includes_whole_days(make_tender):
	inside = make_tender(end_date=datetime(2025, 7, 1, 10, 0, tzinfo=dt_timezone.utc))
	last_day = make_tender(end_date=datetime(2025, 7, 31, 14, 0, tzinfo=dt_timezone.utc))
	make_tender(end_date=datetime(2025, 8, 2, 10, 0, tzinfo=dt_timezone.utc))
	make_tender(end_date=None)

	page = search(TenderFilters(closing_date_from=date(2025, 7, 1), closing_date_to=date(2025, 7, 31)))

	assert sorted(ocids(page)) == sorted([inside.ocid, last_day.ocid])


@pytest.mark.django_db
def test_published_date_bounds_accept_exact_datetimes(make_tender):
	early = make_tender(published_date=datetime(2025, 5, 1, 8, 0, tzinfo=dt_timezone.utc))
	make_tender(published_date=datetime(2025, 5, 1, 16, 0, tzinfo=dt_timezone.utc))

	page = search(TenderFilters(published_date_to=datetime(2025, 5, 1, 12, 0, tzinfo=dt_timezone.utc)))

	assert ocids(page) == [early.ocid]


@pytest.mark.django_db
def test_pages_and_total_agree(make_tender):
	for day in range(7):
		make_tender(title="Road maintenance", published_date=NOW - timedelta(days=day))
	make_tender(title="Catering")

	filters = TenderFilters(keyword="road")
	pages = [search(filters, page=number, limit=3) for number in (1, 2, 3, 4)]

	assert all(page.total_count == 7 for page in pages)
	assert [len(page.tenders) for page in pages] == [3, 3, 1, 0]
	seen = [ocid for page in pages for ocid in ocids(page)]
	assert len(seen) == len(set(seen)) == 7


@pytest.mark.django_db
def test_filter_stats_rank_facets_by_count(make_tender):
	for _ in range(3):
		make_tender(
			procuring_entity={"name": "City of X"},
			main_procurement_category="works",
			procurement_method_details="Open tender",
			end_date=NOW + timedelta(days=5),
		)
	make_tender(procuring_entity={"name": "City of Y"}, main_procurement_category="goods", end_date=NOW)
	make_tender(procuring_entity={"id": "anonymous"}, end_date=NOW - timedelta(days=3))

	stats = get_filter_stats(now=NOW)

	assert [(option.value, option.count) for option in stats.procuring_entities] == [("City of X", 3), ("City of Y", 1)]
	assert stats.procuring_entities[0].label == "City of X"
	assert [(option.value, option.count) for option in stats.procurement_categories] == [("works", 3), ("goods", 1)]
	assert [(option.value, option.count) for option in stats.procurement_methods] == [("Open tender", 3)]
	assert stats.total_count == 5
	assert stats.active_count == 4
	assert stats.closed_count == 2


@pytest.mark.django_db
def test_filter_stats_respects_limit(make_tender):
	for name in ("A", "B", "B", "C", "C", "C"):
		make_tender(procuring_entity={"name": name})

	stats = get_filter_stats(now=NOW, limit=2)

	assert [option.value for option in stats.procuring_entities] == ["C", "B"]


@pytest.mark.django_db
def test_filter_stats_on_empty_table():
	stats = get_filter_stats(now=NOW)

	assert stats.procuring_entities == []
	assert stats.total_count == stats.active_count == stats.closed_count == 0


def test_to_query_params_uses_api_parameter_names():
	filters = TenderFilters(
		keyword="roads",
		procuring_entity=["City of X", "City of Y"],
		value_min=100.0,
		closing_date_from=date(2025, 7, 1),
		published_date_to=datetime(2025, 5, 1, 12, 0, tzinfo=dt_timezone.utc),
		status=STATUS_CLOSED,
	)

	params = filters.to_query_params()

	assert params["keyword"] == "roads"
	assert params.getlist("procuringEntity") == ["City of X", "City of Y"]
	assert params["valueMin"] == "100.0"
	assert params["closingDateFrom"] == "2025-07-01"
	assert params["publishedDateTo"] == "2025-05-01"
	assert params["status"] == "closed"
	assert "valueMax" not in params
	assert "status" not in TenderFilters(status=STATUS_ALL).to_query_params()
