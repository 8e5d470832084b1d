"""
Translates ETA engine errors into HTTP responses, once, at the API boundary.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from eta.errors import EtaError, EtaNotFoundError, EtaValidationError, OrderClosedError

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (EtaNotFoundError, status.HTTP_404_NOT_FOUND),
    (EtaValidationError, status.HTTP_400_BAD_REQUEST),
    (OrderClosedError, status.HTTP_409_CONFLICT),
)


def eta_exception_handler(exc, context):
    if isinstance(exc, EtaError):
        for error_class, http_status in _STATUS_BY_ERROR:
            if isinstance(exc, error_class):
                return Response({"error": str(exc)}, status=http_status)
        logger.error("Unmapped ETA error: %s", exc)
        return Response({"error": str(exc)}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    # DRF's own errors (parse, serializer validation, 404 ...) keep their default shape
    return exception_handler(exc, context)
