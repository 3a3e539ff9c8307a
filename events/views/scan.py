from django.http import HttpResponse
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.throttling import ScopedRateThrottle
from rest_framework import status

from events.models import Registration
from events.serializers import CheckInSerializer, RegistrationSerializer
from events.services import lifecycle
from events.tickets import render_qr_png
from .generics import api_error


class CheckInView(APIView):
    """
    POST /api/events/<event_id>/check-in/
    Body: {"qr_payload": "<scanned string>"}
    """
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "check-in"

    def post(self, request, event_id):
        serializer = CheckInSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        reg, already = lifecycle.check_in(event_id, request.user, serializer.validated_data["qr_payload"])

        return Response({
            "action": "already_checked_in" if already else "check_in",
            "message": "Already checked in" if already else "Check-in successful",
            "registration": RegistrationSerializer(reg).data,
        }, status=status.HTTP_200_OK)


class RegistrationQRImageView(APIView):
    """GET /api/events/registrations/<reg_id>/qr/ - PNG of the ticket QR."""
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "qr-image"

    def get(self, request, reg_id):
        reg = lifecycle.owned_registration(reg_id, request.user)

        if reg.status != Registration.STATUS_CONFIRMED or not reg.qr_payload:
            return api_error("Ticket not issued yet", status.HTTP_400_BAD_REQUEST)

        response = HttpResponse(render_qr_png(reg.qr_payload), content_type="image/png")
        response["Cache-Control"] = "no-store"
        return response


class AttendanceListView(APIView):
    """GET /api/events/<event_id>/attendance/"""
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        regs = list(lifecycle.attendance_list(event_id, request.user))
        checked_in = sum(1 for reg in regs if reg.attended)

        return Response({
            "counters": {
                "confirmed": len(regs),
                "checked_in": checked_in,
                "not_checked_in": len(regs) - checked_in,
            },
            "attendees": RegistrationSerializer(regs, many=True).data,
        })
