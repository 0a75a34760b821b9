import logging
import traceback

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.http import Http404, JsonResponse

from marketplace.services.exceptions import Forbidden, NotFound, ServiceError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"


class ApiErrorMiddleware:
    """
    Turn exceptions raised by API views into the JSON error envelope:

        {"error": {"code": "...", "message": "...", "details": ...}}

    HTML views are left to Django's usual handling.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if not request.path.startswith(API_PREFIX):
            return None

        if isinstance(exception, Http404):
            exception = NotFound(str(exception) or "Not found.")
        elif isinstance(exception, PermissionDenied):
            exception = Forbidden(str(exception) or "Permission denied.")

        if isinstance(exception, ServiceError):
            if exception.status_code >= 500:
                logger.error("%s %s: %s", request.method, request.path, exception)
            return JsonResponse(
                {"error": exception.as_dict()}, status=exception.status_code
            )

        logger.exception("Unhandled error on %s %s", request.method, request.path)
        payload = {"code": "internal", "message": "Internal server error."}
        if settings.DEBUG:
            payload["details"] = {"traceback": traceback.format_exc()}
        return JsonResponse({"error": payload}, status=500)
