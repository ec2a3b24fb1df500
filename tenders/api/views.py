import logging

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from tenders.exceptions import TenderNotFound, UpstreamFetchError
from tenders.filters import build_tender_query, get_filter_stats
from tenders.models import Tender
from tenders.serializers import FilterStatsSerializer, ReleaseSerializer, TenderSearchSerializer
from tenders.services.ocds import OCDSClient
from tenders.services.sync import sync_tenders

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


class TenderViewSet(viewsets.ViewSet):
    """Read-only access to the tenders stored by the sync job.

    - list : GET /tenders/ -> filtered, sorted, paginated releases
    - retrieve : GET /tenders/{ocid}/ -> one release with its documents
    - filter_stats : GET /tenders/filter-stats/ -> facet values and counts
    """

    permission_classes = [permissions.AllowAny]
    lookup_field = "ocid"
    lookup_value_regex = "[^/]+"

    def list(self, request):
        serializer = TenderSearchSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        params = serializer.to_search_params()

        now = timezone.now()
        page = build_tender_query(params, now=now)
        releases = ReleaseSerializer(page.tenders, many=True, context={"request": request, "now": now}).data

        has_next = page.current_page * params.limit < page.total_count
        return Response({
            "releases": releases,
            "totalCount": page.total_count,
            "page": page.current_page,
            "pageSize": params.limit,
            "next": self._page_link(request, params, page.current_page + 1) if has_next else None,
            "previous": self._page_link(request, params, page.current_page - 1) if page.current_page > 1 else None,
        })

    def retrieve(self, request, ocid=None):
        tender = Tender.objects.prefetch_related("documents").filter(ocid=ocid).first()
        if tender is None:
            raise TenderNotFound()
        return Response(ReleaseSerializer(tender, context={"request": request}).data)

    @action(detail=False, methods=["get"], url_path="filter-stats", url_name="filter-stats")
    def filter_stats(self, request):
        try:
            stats = get_filter_stats(limit=settings.FILTER_STATS_LIMIT)
        except DatabaseError:
            logger.exception("Error fetching filter stats")
            return Response(
                {"error": "Failed to fetch filter statistics"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response(FilterStatsSerializer(stats).data)

    @staticmethod
    def _page_link(request, params, number):
        query = params.filters.to_query_params()
        # status always travels explicitly: a missing status means "active"
        if params.filters.status:
            query["status"] = params.filters.status
        query["page"] = str(number)
        query["pageSize"] = str(params.limit)
        query["sortBy"] = params.sort_by
        query["sortOrder"] = params.sort_order
        return request.build_absolute_uri(f"{request.path}?{query.urlencode()}")


class CorsMixin:
    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        for header, value in CORS_HEADERS.items():
            response[header] = value
        return response


class ReleaseProxyView(CorsMixin, APIView):
    """Forward the query string to the OCDS releases endpoint and relay the answer."""

    permission_classes = [permissions.AllowAny]

    def get(self, request):
        try:
            payload = OCDSClient().proxy(dict(request.query_params.lists()))
        except UpstreamFetchError as exc:
            logger.error("Error fetching tenders: %s", exc)
            return Response({"error": "Failed to fetch tenders"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response(payload)


class ReleaseDetailProxyView(CorsMixin, APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request, ocid):
        try:
            payload = OCDSClient().fetch_release(ocid)
        except UpstreamFetchError as exc:
            if exc.upstream_status == status.HTTP_404_NOT_FOUND:
                return Response({"error": "Tender not found"}, status=status.HTTP_404_NOT_FOUND)
            logger.error("Error fetching tender detail %s: %s", ocid, exc)
            return Response(
                {"error": "Failed to fetch tender detail"},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response(payload)


class CronSyncView(APIView):
    """Entry point for the scheduler: import the releases of the last day."""

    permission_classes = [permissions.AllowAny]

    def get(self, request):
        try:
            result = sync_tenders(page_size=settings.SYNC_CRON_PAGE_SIZE)
        except (UpstreamFetchError, DatabaseError) as exc:
            logger.exception("Failed to sync tenders")
            return Response(
                {"success": False, "error": str(exc)},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        if result.releases == 0:
            return Response({"success": True, "message": "No new tenders to sync."})
        return Response({
            "success": True,
            "synced": result.tenders,
            "documents": result.documents,
            "skipped": result.skipped,
        })
