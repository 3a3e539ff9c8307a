from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.throttling import ScopedRateThrottle
from rest_framework import status

from events.serializers import (
    FeedbackInputSerializer,
    FeedbackSerializer,
    OrganizerFeedbackSerializer,
)
from events.services import lifecycle
from .generics import paginated


class EventFeedbackView(APIView):
    """
    /api/events/<event_id>/feedback/

    POST  - attendee submits feedback: {"rating": 1-5, "comment": "...", "is_anonymous": true}
    PATCH - attendee revises it within a day of submitting
    GET   - organizer lists all feedback (?rating=N); anonymous authors are hidden
    """
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "feedback"

    def get(self, request, event_id):
        qs = lifecycle.event_feedback(event_id, request.user, rating=request.query_params.get("rating"))
        return paginated(request, qs, OrganizerFeedbackSerializer)

    def post(self, request, event_id):
        serializer = FeedbackInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        feedback = lifecycle.submit_feedback(
            event_id,
            request.user,
            rating=data["rating"],
            comment=data.get("comment", ""),
            is_anonymous=data.get("is_anonymous", True),
        )
        return Response(FeedbackSerializer(feedback).data, status=status.HTTP_201_CREATED)

    def patch(self, request, event_id):
        serializer = FeedbackInputSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        feedback = lifecycle.update_feedback(
            event_id,
            request.user,
            rating=data.get("rating"),
            comment=data.get("comment"),
            is_anonymous=data.get("is_anonymous"),
        )
        return Response(FeedbackSerializer(feedback).data)


class MyFeedbackView(APIView):
    """GET /api/events/<event_id>/feedback/mine/ - whether the caller has rated the event."""
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        feedback = lifecycle.feedback_status(event_id, request.user)
        return Response({
            "has_submitted": feedback is not None,
            "feedback": FeedbackSerializer(feedback).data if feedback else None,
        })
