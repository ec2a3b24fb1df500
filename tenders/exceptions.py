from rest_framework import status
from rest_framework.exceptions import APIException, NotFound


class UpstreamFetchError(APIException):
    """Raised when the OCDS API answers with a non-success status or cannot be reached."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "The OCDS API request failed."
    default_code = "upstream_fetch_failed"

    def __init__(self, upstream_status=None, detail=None):
        self.upstream_status = upstream_status
        if detail is None:
            if upstream_status is not None:
                detail = f"OCDS API error: {upstream_status}"
            else:
                detail = self.default_detail
        super().__init__(detail=detail)


class TenderNotFound(NotFound):
    default_detail = "Tender not found."
    default_code = "tender_not_found"
