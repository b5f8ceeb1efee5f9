from rest_framework import serializers

from .models import AppUser, Notification, NotificationPreference


class RegisterSerializer(serializers.Serializer):
    mobile = serializers.CharField(max_length=15)
    name = serializers.CharField(max_length=128, required=False, allow_blank=True)
    email = serializers.EmailField(required=False)


class ProfileSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=128, required=False)
    email = serializers.EmailField(required=False)


class PinSerializer(serializers.Serializer):
    pin = serializers.CharField(min_length=4, max_length=6)


class BiometricSerializer(serializers.Serializer):
    enabled = serializers.BooleanField()


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = AppUser
        fields = (
            "id",
            "mobile",
            "name",
            "email",
            "biometric_enabled",
            "kyc_level",
            "kyc_status",
            "created_at",
        )


class NotificationPreferenceSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationPreference
        fields = (
            "push_enabled",
            "savings_alerts",
            "investment_alerts",
            "kyc_alerts",
            "transaction_alerts",
        )


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ("id", "kind", "payload", "is_read", "sent", "created_at")


class NotificationQuerySerializer(serializers.Serializer):
    kind = serializers.CharField(max_length=32, required=False)
    is_read = serializers.BooleanField(allow_null=True, default=None)
    page = serializers.IntegerField(min_value=1, default=1)
    limit = serializers.IntegerField(min_value=1, max_value=100, default=20)


class MarkReadSerializer(serializers.Serializer):
    notification_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)
