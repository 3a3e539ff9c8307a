# events/exceptions.py
"""
Domain errors raised by the registration services.

They are DRF exceptions so views can let them propagate and
core.exceptions.custom_exception_handler renders them uniformly.
NotFound, PermissionDenied and ValidationError are used straight from DRF.
"""
from rest_framework import status
from rest_framework.exceptions import (  # noqa: F401  (re-exported)
    APIException,
    NotFound,
    PermissionDenied,
    ValidationError,
)


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The request conflicts with the current state."
    default_code = "conflict"


class CapacityExceeded(Conflict):
    """Seat limit reached, or the team already has all its members."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Event is full."
    default_code = "capacity_exceeded"


class InsufficientStock(Conflict):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Insufficient stock."
    default_code = "insufficient_stock"


class InvalidState(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Operation not allowed in the current state."
    default_code = "invalid_state"
