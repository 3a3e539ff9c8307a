from django.conf import settings
from rest_framework import serializers

from users.models import User
from users.serializers import UserSummarySerializer
from .models import (
    Event,
    Feedback,
    MerchItem,
    MerchVariant,
    Registration,
    RegistrationOrder,
    Team,
    TeamMember,
)
from .services.ledger import seats_taken


# -----------------------------------------
# EVENTS
# -----------------------------------------
class MerchVariantSerializer(serializers.ModelSerializer):
    class Meta:
        model = MerchVariant
        fields = ["size", "color", "stock"]


class MerchItemSerializer(serializers.ModelSerializer):
    variants = MerchVariantSerializer(many=True)

    class Meta:
        model = MerchItem
        fields = ["sku", "name", "purchase_limit_per_user", "variants"]


class EventSerializer(serializers.ModelSerializer):
    organizer_name = serializers.CharField(source="organizer.display_name", read_only=True)
    items = MerchItemSerializer(many=True, read_only=True)
    current_registrations = serializers.SerializerMethodField()
    spots_left = serializers.SerializerMethodField()

    class Meta:
        model = Event
        fields = [
            "id",
            "organizer",
            "organizer_name",
            "title",
            "description",
            "event_type",
            "status",
            "eligibility",
            "registration_deadline",
            "event_start_date",
            "event_end_date",
            "venue",
            "max_participants",
            "current_registrations",
            "spots_left",
            "fee",
            "merchandise_fee",
            "tags",
            "allow_teams",
            "min_team_size",
            "max_team_size",
            "form_schema",
            "form_locked",
            "items",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_current_registrations(self, obj):
        # Annotated by the list queries; fall back to a count
        count = getattr(obj, "current_registrations", None)
        return count if count is not None else seats_taken(obj)

    def get_spots_left(self, obj):
        if obj.max_participants is None:
            return None
        return max(0, obj.max_participants - self.get_current_registrations(obj))


class VariantInputSerializer(serializers.Serializer):
    size = serializers.CharField(max_length=16, required=False, default="-")
    color = serializers.CharField(max_length=32, required=False, default="-")
    stock = serializers.IntegerField(min_value=0)


class ItemInputSerializer(serializers.Serializer):
    sku = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=255)
    purchase_limit_per_user = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    variants = VariantInputSerializer(many=True)


class FormFieldSerializer(serializers.Serializer):
    field_id = serializers.CharField(max_length=64)
    label = serializers.CharField(max_length=255)
    type = serializers.ChoiceField(choices=["text", "number", "select", "checkbox"])
    required = serializers.BooleanField(default=False)
    options = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    order = serializers.IntegerField(required=False, default=0)


class EventWriteSerializer(serializers.Serializer):
    """
    Input for create and edit. Only the keys actually sent are passed on,
    so the edit allow-list sees exactly what the organizer tried to change.
    """
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)
    event_type = serializers.ChoiceField(choices=Event.TYPE_CHOICES, required=False)
    eligibility = serializers.ListField(
        child=serializers.ChoiceField(choices=User.PARTICIPANT_TYPE_CHOICES),
        required=False,
    )
    registration_deadline = serializers.DateTimeField(required=False, allow_null=True)
    event_start_date = serializers.DateTimeField()
    event_end_date = serializers.DateTimeField(required=False, allow_null=True)
    venue = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    max_participants = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    fee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    merchandise_fee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    tags = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    allow_teams = serializers.BooleanField(required=False)
    min_team_size = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    max_team_size = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    form_schema = FormFieldSerializer(many=True, required=False)
    items = ItemInputSerializer(many=True, required=False)

    def to_internal_value(self, data):
        unknown = set(data) - set(self.fields)
        if unknown:
            raise serializers.ValidationError({field: "Unknown field." for field in sorted(unknown)})
        return super().to_internal_value(data)


class EventStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Event.STATUS_CHOICES)


# -----------------------------------------
# REGISTRATIONS
# -----------------------------------------
class RegistrationOrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = RegistrationOrder
        fields = [
            "sku",
            "name",
            "size",
            "color",
            "quantity",
            "price",
            "amount_paid",
            "payment_status",
            "payment_proof",
            "proof_uploaded_at",
            "rejection_reason",
            "reviewed_at",
        ]
        read_only_fields = fields


class RegistrationSerializer(serializers.ModelSerializer):
    event_title = serializers.CharField(source="event.title", read_only=True)
    participant = UserSummarySerializer(read_only=True)
    team_name = serializers.CharField(source="team.team_name", read_only=True, default=None)
    order = serializers.SerializerMethodField()

    class Meta:
        model = Registration
        fields = [
            "id",
            "event",
            "event_title",
            "participant",
            "team",
            "team_name",
            "registration_type",
            "status",
            "ticket_id",
            "qr_payload",
            "form_response",
            "attended",
            "attended_at",
            "order",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_order(self, obj):
        order = obj.current_order
        return RegistrationOrderSerializer(order).data if order else None


class OrderInputSerializer(serializers.Serializer):
    sku = serializers.CharField(max_length=64, required=False, allow_blank=True)
    size = serializers.CharField(max_length=16, required=False)
    color = serializers.CharField(max_length=32, required=False)
    variant = serializers.DictField(child=serializers.CharField(), required=False)
    quantity = serializers.IntegerField(min_value=1, required=False)


class RegisterSerializer(serializers.Serializer):
    form_response = serializers.DictField(required=False, default=dict)
    order = OrderInputSerializer(required=False, allow_null=True)


class PaymentProofSerializer(serializers.Serializer):
    payment_proof = serializers.FileField()

    def validate_payment_proof(self, value):
        max_bytes = getattr(settings, "PAYMENT_PROOF_MAX_BYTES", 5 * 1024 * 1024)
        if value.size > max_bytes:
            raise serializers.ValidationError(f"File too large (max {max_bytes // (1024 * 1024)} MB).")
        content_type = getattr(value, "content_type", "") or ""
        if content_type and not (content_type.startswith("image/") or content_type == "application/pdf"):
            raise serializers.ValidationError("Upload an image or a PDF.")
        return value


class RejectPaymentSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class CheckInSerializer(serializers.Serializer):
    # Raw scanned string, or the decoded object
    qr_payload = serializers.JSONField()


# -----------------------------------------
# FEEDBACK
# -----------------------------------------
class FeedbackSerializer(serializers.ModelSerializer):
    class Meta:
        model = Feedback
        fields = ["id", "event", "rating", "comment", "is_anonymous", "created_at", "updated_at"]
        read_only_fields = fields


class OrganizerFeedbackSerializer(FeedbackSerializer):
    participant = serializers.SerializerMethodField()

    class Meta(FeedbackSerializer.Meta):
        fields = FeedbackSerializer.Meta.fields + ["participant"]
        read_only_fields = fields

    def get_participant(self, obj):
        if obj.is_anonymous:
            return None
        return UserSummarySerializer(obj.participant).data


class FeedbackInputSerializer(serializers.Serializer):
    # 1-5 range is enforced in events.services.feedback
    rating = serializers.IntegerField()
    comment = serializers.CharField(required=False, allow_blank=True, max_length=2000, trim_whitespace=True)
    is_anonymous = serializers.BooleanField(required=False)


# -----------------------------------------
# TEAMS
# -----------------------------------------
class TeamMemberSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = TeamMember
        fields = ["id", "user", "status", "joined_at"]
        read_only_fields = fields


class TeamSerializer(serializers.ModelSerializer):
    event_title = serializers.CharField(source="event.title", read_only=True)
    team_leader = UserSummarySerializer(read_only=True)
    members = TeamMemberSerializer(many=True, read_only=True)
    accepted_count = serializers.IntegerField(read_only=True)
    is_full = serializers.BooleanField(read_only=True)

    class Meta:
        model = Team
        fields = [
            "id",
            "event",
            "event_title",
            "team_name",
            "team_leader",
            "team_size",
            "invite_code",
            "status",
            "members",
            "accepted_count",
            "is_full",
            "form_response",
            "completed_at",
            "registered_at",
            "created_at",
        ]
        read_only_fields = fields


class TeamPreviewSerializer(serializers.ModelSerializer):
    """What someone holding an invite code sees before joining."""
    event_title = serializers.CharField(source="event.title", read_only=True)
    event_start_date = serializers.DateTimeField(source="event.event_start_date", read_only=True)
    team_leader = UserSummarySerializer(read_only=True)
    accepted_count = serializers.IntegerField(read_only=True)
    is_full = serializers.BooleanField(read_only=True)

    class Meta:
        model = Team
        fields = [
            "id",
            "event",
            "event_title",
            "event_start_date",
            "team_name",
            "team_leader",
            "team_size",
            "status",
            "accepted_count",
            "is_full",
        ]
        read_only_fields = fields


class TeamCreateSerializer(serializers.Serializer):
    event_id = serializers.IntegerField()
    team_name = serializers.CharField(max_length=100)
    team_size = serializers.IntegerField(min_value=1)
    form_response = serializers.DictField(required=False, default=dict)


class TeamJoinSerializer(serializers.Serializer):
    invite_code = serializers.CharField(max_length=16)


class TeamInviteSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(required=False)
    username = serializers.CharField(required=False)
    email = serializers.EmailField(required=False)

    def validate(self, attrs):
        if not any(attrs.get(key) for key in ("user_id", "username", "email")):
            raise serializers.ValidationError("Provide user_id, username or email.")
        return attrs


class InviteResponseSerializer(serializers.Serializer):
    accept = serializers.BooleanField()
