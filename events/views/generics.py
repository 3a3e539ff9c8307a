import os
import uuid

from django.conf import settings
from django.core.files.storage import default_storage
from rest_framework.pagination import LimitOffsetPagination
from rest_framework.response import Response
from rest_framework import status


def api_error(message: str, status_code=status.HTTP_400_BAD_REQUEST):
    """
    Small helper for errors raised outside the services.
    Same envelope as core.exceptions.custom_exception_handler.
    """
    return Response(
        {"success": False, "status_code": status_code, "errors": {"detail": message}},
        status=status_code,
    )


def paginated(request, queryset, serializer_class, context=None):
    """LimitOffset pagination when ?limit= is given, plain list otherwise."""
    paginator = LimitOffsetPagination()
    page = paginator.paginate_queryset(queryset, request)
    if page is None:
        return Response(serializer_class(queryset, many=True, context=context).data)
    serializer = serializer_class(page, many=True, context=context)
    return paginator.get_paginated_response(serializer.data)


def save_payment_proof(upload, registration_id) -> str:
    """
    Store an uploaded payment proof and return the storage reference.

    Local MEDIA_ROOT in development, the S3 bucket when USE_S3_MEDIA=1.
    """
    _, ext = os.path.splitext(upload.name or "")
    name = os.path.join(
        getattr(settings, "PAYMENT_PROOF_UPLOAD_DIR", "payments"),
        f"reg-{registration_id}-{uuid.uuid4().hex}{ext.lower()}",
    )
    return default_storage.save(name, upload)
