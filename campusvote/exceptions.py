import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler, set_rollback

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """
    Reshape DRF error responses into the API's ``{"success": false, "error": ...}`` body.

    Validation errors keep their per-field messages under ``fields``. Storage
    faults become a 503 so the client knows a retry is safe.
    """
    view = context.get("view")
    view_name = view.__class__.__name__ if view else None

    if isinstance(exc, DatabaseError):
        logger.error("Storage failure in %s: %s", view_name, exc)
        set_rollback()
        return Response(
            {"success": False, "error": "Storage unavailable, please retry"},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    response = exception_handler(exc, context)
    if response is None:
        return None

    data = response.data
    if isinstance(data, dict) and "detail" in data:
        payload = {"success": False, "error": str(data["detail"])}
    else:
        payload = {"success": False, "error": "Invalid input", "fields": data}

    logger.debug("Request rejected by %s with status %s", view_name, response.status_code)
    response.data = payload
    return response
