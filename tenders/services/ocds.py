"""Thin client for the eTenders OCDS releases API.

Exposes:
 - OCDSClient.fetch_releases(date_from, date_to, page_size) -> list of releases
 - OCDSClient.fetch_release(ocid) -> release package
 - OCDSClient.proxy(params) -> raw list payload
"""
import logging
from datetime import date
from urllib.parse import quote

import requests
from django.conf import settings

from tenders.exceptions import UpstreamFetchError

logger = logging.getLogger(__name__)


def format_day(value) -> str:
    if isinstance(value, date):
        return value.isoformat()[:10]
    return str(value)


class OCDSClient:
    def __init__(self, base_url=None, timeout=None, session=None):
        self.base_url = (base_url or settings.OCDS_API_BASE).rstrip("/")
        self.timeout = timeout or settings.OCDS_TIMEOUT
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = settings.OCDS_USER_AGENT
        self.session.headers["Accept"] = "application/json"

    def _get(self, url, params=None):
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("OCDS API unreachable at %s: %s", url, exc)
            raise UpstreamFetchError(detail=f"OCDS API unreachable: {exc}") from exc
        if not 200 <= response.status_code < 300:
            logger.error("OCDS API returned HTTP %s for %s", response.status_code, url)
            raise UpstreamFetchError(response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            # maintenance pages come back as 200 text/html
            logger.error("OCDS API returned a non-JSON body for %s", url)
            raise UpstreamFetchError(response.status_code, detail="OCDS API returned invalid JSON") from exc

    def fetch_releases(self, date_from, date_to, page_size, page_number=None) -> list:
        params = {
            "dateFrom": format_day(date_from),
            "dateTo": format_day(date_to),
            "PageSize": page_size,
        }
        if page_number is not None:
            params["PageNumber"] = page_number
        payload = self._get(self.base_url, params=params)
        if not isinstance(payload, dict):
            raise UpstreamFetchError(detail="OCDS API returned an unexpected payload")
        return payload.get("releases") or []

    def fetch_release(self, ocid: str) -> dict:
        return self._get(f"{self.base_url}/release/{quote(ocid, safe='')}")

    def proxy(self, params) -> dict:
        return self._get(self.base_url, params=params)
