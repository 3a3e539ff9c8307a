from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = [
            "id",
            "type",
            "title",
            "body",
            "is_read",
            "created_at",
            "event",
            "team",
        ]
        read_only_fields = fields


class MarkReadSerializer(serializers.Serializer):
    # Omitted or empty marks everything read.
    ids = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False, allow_empty=True)
