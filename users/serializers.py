from rest_framework import serializers
from .models import User


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact user representation embedded in registrations and teams."""
    name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'name', 'email']


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            'id',
            'username',
            'email',
            'first_name',
            'last_name',
            'role',
            'participant_type',
            'college',
            'contact_number',
            'organizer_name',
            'discord_webhook',
            'date_joined',
        ]
        read_only_fields = ['id', 'username', 'role', 'date_joined']


class UpdateProfileSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=False)

    class Meta:
        model = User
        fields = [
            'first_name', 'last_name', 'participant_type', 'college',
            'contact_number', 'organizer_name', 'discord_webhook', 'password',
        ]

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance
