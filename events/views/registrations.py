import logging

from django.core.files.storage import default_storage
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.throttling import ScopedRateThrottle
from rest_framework import status

from events.serializers import (
    PaymentProofSerializer,
    RegisterSerializer,
    RegistrationSerializer,
    RejectPaymentSerializer,
)
from events.services import lifecycle
from .generics import paginated, save_payment_proof

logger = logging.getLogger('cos.events')


class RegisterEventView(APIView):
    """
    POST /api/events/<event_id>/register/
    Body: {"form_response": {...}, "order": {"sku": "TSHIRT", "size": "M", "color": "Black", "quantity": 1}}

    "order" is only read for merchandise events.
    """
    permission_classes = [IsAuthenticated]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "registration"

    def post(self, request, event_id):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        reg = lifecycle.register(
            event_id,
            request.user,
            form_response=serializer.validated_data.get("form_response"),
            order=serializer.validated_data.get("order"),
        )
        data = RegistrationSerializer(reg).data
        order = reg.current_order
        data["amount_due"] = str(order.amount_paid) if order else "0.00"
        return Response(data, status=status.HTTP_201_CREATED)


class MyRegistrationsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return paginated(request, lifecycle.my_registrations(request.user), RegistrationSerializer)


class RegistrationDetailView(APIView):
    """GET /api/events/registrations/<reg_id>/ - owner or event organizer."""
    permission_classes = [IsAuthenticated]

    def get(self, request, reg_id):
        reg = lifecycle.owned_registration(reg_id, request.user)
        return Response(RegistrationSerializer(reg).data)


class CancelRegistrationView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, reg_id):
        reg = lifecycle.cancel_registration(reg_id, request.user)
        return Response({"message": "Registration cancelled", "registration": RegistrationSerializer(reg).data})


class EventRegistrationsView(APIView):
    """GET /api/events/<event_id>/registrations/?status=CONFIRMED"""
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        regs = lifecycle.event_registrations(event_id, request.user, status=request.query_params.get("status"))
        return paginated(request, regs, RegistrationSerializer)


# -----------------------------------------
# PAYMENTS
# -----------------------------------------
class UploadPaymentProofView(APIView):
    """
    POST /api/events/registrations/<reg_id>/payment-proof/
    multipart: payment_proof=<image or pdf>
    """
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser, JSONParser]

    def post(self, request, reg_id):
        serializer = PaymentProofSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        proof_ref = save_payment_proof(serializer.validated_data["payment_proof"], reg_id)
        try:
            reg = lifecycle.upload_payment_proof(reg_id, request.user, proof_ref)
        except Exception:
            # The registration did not accept the file; do not keep it around
            try:
                default_storage.delete(proof_ref)
            except Exception as e:
                logger.warning(f"Could not delete orphaned payment proof {proof_ref}: {e}")
            raise

        return Response({
            "message": "Payment proof uploaded. Your order is now pending approval.",
            "registration": RegistrationSerializer(reg).data,
        })


class ApprovePaymentView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, reg_id):
        reg = lifecycle.approve_payment(reg_id, request.user)
        return Response({
            "message": "Payment approved. Ticket issued.",
            "registration": RegistrationSerializer(reg).data,
        })


class RejectPaymentView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, reg_id):
        serializer = RejectPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        reg = lifecycle.reject_payment(reg_id, request.user, reason=serializer.validated_data["reason"])
        return Response({
            "message": "Payment rejected.",
            "registration": RegistrationSerializer(reg).data,
        })


class PaymentApprovalsView(APIView):
    """GET /api/events/<event_id>/payments/?status=PENDING"""
    permission_classes = [IsAuthenticated]

    def get(self, request, event_id):
        regs = lifecycle.payment_approvals(
            event_id,
            request.user,
            payment_status=request.query_params.get("status"),
        )
        return paginated(request, regs, RegistrationSerializer)
