from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework import status

from events.serializers import EventSerializer, EventStatusSerializer, EventWriteSerializer
from events.services import lifecycle
from .generics import paginated


class EventListCreateView(APIView):
    """
    GET  /api/events/?type=MERCH&eligibility=IIIT&search=hack   (public)
    POST /api/events/                                          (organizers)
    """

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request):
        events = lifecycle.public_events(
            event_type=request.query_params.get("type"),
            eligibility=request.query_params.get("eligibility"),
            search=request.query_params.get("search"),
        )
        return paginated(request, events, EventSerializer)

    def post(self, request):
        serializer = EventWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        event = lifecycle.create_event(request.user, serializer.validated_data)
        return Response(EventSerializer(event).data, status=status.HTTP_201_CREATED)


class EventDetailView(APIView):
    """
    GET   /api/events/<id>/   public detail (404 for drafts and cancelled events)
    PATCH /api/events/<id>/   organizer edit, limited by the event's status
    """

    def get_permissions(self):
        if self.request.method == "GET":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request, event_id):
        event = lifecycle.public_event(event_id)
        return Response(EventSerializer(event).data)

    def patch(self, request, event_id):
        serializer = EventWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        event = lifecycle.update_event(event_id, serializer.validated_data, request.user)
        return Response(EventSerializer(event).data)


class OrganizerEventsView(APIView):
    """GET /api/events/mine/ - every event I organize, drafts included."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return paginated(request, lifecycle.organizer_events(request.user), EventSerializer)


class OrganizerEventDetailView(APIView):
    """GET /api/events/<id>/manage/ - organizer view of any status."""
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        event = lifecycle.get_managed_event(event_id, request.user)
        return Response(EventSerializer(event).data)


class PublishEventView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, event_id):
        event = lifecycle.publish_event(event_id, request.user)
        return Response(EventSerializer(event).data)


class EventStatusView(APIView):
    """
    POST /api/events/<id>/status/
    Body: {"status": "ONGOING" | "CLOSED" | "COMPLETED" | "CANCELLED" | "PUBLISHED"}
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, event_id):
        serializer = EventStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        event = lifecycle.change_event_status(event_id, serializer.validated_data["status"], request.user)
        return Response(EventSerializer(event).data)
