import itertools

import pytest
import requests

from tenders.models import Tender
from tenders.services.ocds import OCDSClient


class FakeOCDSClient:
	"""Stands in for OCDSClient: serves canned releases and records each call."""

	def __init__(self, releases=None, error=None):
		self.releases = releases or []
		self.error = error
		self.calls = []

	def fetch_releases(self, date_from, date_to, page_size, page_number=None):
		self.calls.append({"date_from": date_from, "date_to": date_to, "page_size": page_size})
		if self.error is not None:
			raise self.error
		return list(self.releases)


@pytest.fixture
def fake_client():
	return FakeOCDSClient


@pytest.fixture
def make_release():
	def _make(ocid, title="Supply of office furniture", documents=None, **tender_fields):
		tender = {"id": f"{ocid}-tender", "title": title}
		tender.update(tender_fields)
		if documents is not None:
			tender["documents"] = documents
		return {"ocid": ocid, "id": f"{ocid}-release", "date": "2025-03-01T09:00:00Z", "tender": tender}

	return _make


@pytest.fixture
def make_tender(db):
	counter = itertools.count(1)

	def _make(**overrides):
		number = next(counter)
		data = {"ocid": f"ocds-9t57fa-{number:05d}", "title": f"Tender {number}"}
		data.update(overrides)
		return Tender.objects.create(**data)

	return _make


class MaintenanceSession:
	"""A session whose every GET answers 200 with an HTML maintenance page."""

	def __init__(self):
		self.headers = {}

	def get(self, url, params=None, timeout=None):
		response = requests.Response()
		response.status_code = 200
		response.headers["Content-Type"] = "text/html"
		response.encoding = "utf-8"
		response._content = b"<html>maintenance</html>"
		return response


@pytest.fixture
def maintenance_client():
	def _make():
		return OCDSClient(session=MaintenanceSession())

	return _make
