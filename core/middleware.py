import logging
import time

from django.conf import settings

logger = logging.getLogger(__name__)


def request_user(request):
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return user.get_username()
    return "anonymous"


class RequestLoggingMiddleware:
    """Time each request and log one line per response.

    The duration is returned in the `X-Request-Duration-ms` header. Server
    errors are logged at ERROR, client errors and requests slower than
    `SLOW_REQUEST_MS` at WARNING, everything else at INFO.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        self.slow_ms = settings.SLOW_REQUEST_MS

    def __call__(self, request):
        started = time.perf_counter()
        response = self.get_response(request)
        duration_ms = int((time.perf_counter() - started) * 1000)

        response["X-Request-Duration-ms"] = str(duration_ms)
        logger.log(
            self.level_for(response.status_code, duration_ms),
            "[request] %s %s status=%s duration_ms=%s user=%s",
            request.method,
            request.get_full_path(),
            response.status_code,
            duration_ms,
            request_user(request),
        )
        return response

    def level_for(self, status_code, duration_ms):
        if status_code >= 500:
            return logging.ERROR
        if status_code >= 400 or duration_ms >= self.slow_ms:
            return logging.WARNING
        return logging.INFO
