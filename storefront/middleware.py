# storefront/middleware.py
import logging
import re
import time
import uuid

from django.conf import settings
from django.core.exceptions import BadRequest, PermissionDenied, SuspiciousOperation
from django.http import Http404, HttpRequest, JsonResponse

logger = logging.getLogger(__name__)

REQUEST_ID_RE = re.compile(r'^[A-Za-z0-9._-]{1,64}$')


def _is_api(request):
    return request.path.startswith('/api/')


class ApiRequestMiddleware:
    """
    Every /api/ response carries an X-Request-ID (the caller's, when it
    sends a usable one) and errors that escape a view come back in the
    same {"success": false, "error": ...} envelope the views use.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request: HttpRequest):
        if not _is_api(request):
            return self.get_response(request)

        incoming = request.headers.get('X-Request-ID', '')
        request.request_id = incoming if REQUEST_ID_RE.match(incoming) else uuid.uuid4().hex
        started = time.monotonic()

        response = self.get_response(request)

        elapsed_ms = (time.monotonic() - started) * 1000
        if elapsed_ms > settings.API_SLOW_REQUEST_MS:
            logger.warning(
                f"Slow API call {request.method} {request.path}: {elapsed_ms:.0f}ms [{request.request_id}]"
            )
        response['X-Request-ID'] = request.request_id
        return response

    def process_exception(self, request, exception):
        if not _is_api(request):
            return None

        if isinstance(exception, Http404):
            return JsonResponse({"success": False, "error": "Not found"}, status=404)
        if isinstance(exception, PermissionDenied):
            return JsonResponse({"success": False, "error": "Forbidden"}, status=403)
        if isinstance(exception, (BadRequest, SuspiciousOperation)):
            logger.warning(f"Rejected {request.method} {request.path}: {str(exception)}")
            return JsonResponse({"success": False, "error": "Bad request"}, status=400)

        request_id = getattr(request, 'request_id', '-')
        logger.error(f"Unhandled error on {request.method} {request.path} [{request_id}]: {str(exception)}", exc_info=True)
        return JsonResponse({"success": False, "error": "Internal server error", "request_id": request_id}, status=500)


class CacheControlMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request: HttpRequest):
        response = self.get_response(request)

        # Customer, payment and back-office data must never sit in a shared cache
        if request.path.startswith(tuple(settings.API_NO_STORE_PREFIXES)):
            response['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
            response['Pragma'] = 'no-cache'
            response['Expires'] = '0'

        return response
