import logging
import time

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError, connection
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

logger = logging.getLogger("cos.api")


def _database_ok() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        return False
    return True


def _cache_ok() -> bool:
    # Throttling lives in the cache; a dead cache means no rate limits.
    try:
        cache.set("health:ping", "1", 5)
        return cache.get("health:ping") == "1"
    except Exception:
        logger.exception("Health check: cache unreachable")
        return False


class HealthCheckView(APIView):
    """
    Uptime check. Reports database and cache reachability and whether
    ticket mails and announcements run inline or on a worker.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, *args, **kwargs):
        start = time.monotonic()
        db_ok = _database_ok()
        cache_ok = _cache_ok()

        return Response(
            {
                "status": "ok" if db_ok and cache_ok else "degraded",
                "db": db_ok,
                "cache": cache_ok,
                "side_effects": "inline" if settings.CELERY_TASK_ALWAYS_EAGER else "worker",
                "env": settings.ENV,
                "latency_ms": int((time.monotonic() - start) * 1000),
            }
        )
