from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger("cos.api")


def custom_exception_handler(exc, context):
    """
    Wrap DRF + Django exceptions into a consistent response format.

    Success responses (2xx) are not touched.
    Only errors come through here. Expected lifecycle outcomes (capacity
    exceeded, duplicate registration, ...) are APIExceptions and carry a
    machine-readable ``code`` next to the human message.
    """
    response = drf_exception_handler(exc, context)

    # If DRF handled it, wrap it
    if response is not None:
        code = getattr(exc, "default_code", None) if isinstance(exc, APIException) else None
        return Response(
            {
                "success": False,
                "status_code": response.status_code,
                "code": code,
                "errors": response.data,
            },
            status=response.status_code,
            headers={
                key: value for key, value in response.items()
                if key in ("WWW-Authenticate", "Retry-After")
            },
        )

    # Unhandled exceptions -> 500 without leaking internals
    logger.exception("Unhandled API exception", exc_info=exc)

    return Response(
        {
            "success": False,
            "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
            "code": "server_error",
            "errors": {"detail": "Internal server error."},
        },
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
