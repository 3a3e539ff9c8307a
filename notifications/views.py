from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from .models import Notification
from .serializers import MarkReadSerializer, NotificationSerializer

TRUTHY = ("1", "true", "yes")


class MyNotificationsView(APIView):
    """
    GET  /api/notifications/?unread=true&event=<id>&type=PAYMENT
    POST /api/notifications/   {"ids": [...]} marks those read, {} marks all
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        params = request.query_params
        qs = Notification.objects.filter(user=request.user).select_related("event", "team")

        if params.get("unread", "").lower() in TRUTHY:
            qs = qs.filter(is_read=False)
        if params.get("event", "").isdigit():
            qs = qs.filter(event_id=int(params["event"]))
        if params.get("type"):
            qs = qs.filter(type=params["type"].upper())

        return Response(NotificationSerializer(qs, many=True).data)

    def post(self, request):
        serializer = MarkReadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        qs = Notification.objects.filter(user=request.user, is_read=False)
        ids = serializer.validated_data.get("ids")
        if ids:
            qs = qs.filter(id__in=ids)

        return Response({"marked_read": qs.update(is_read=True)})


class UnreadCountView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({"unread": Notification.objects.filter(user=request.user, is_read=False).count()})
