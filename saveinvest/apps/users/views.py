from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from .models import AppUser
from .serializers import (
    BiometricSerializer,
    MarkReadSerializer,
    NotificationQuerySerializer,
    NotificationSerializer,
    NotificationPreferenceSerializer,
    PinSerializer,
    ProfileSerializer,
    RegisterSerializer,
    UserSerializer,
)
from .services import inbox, profile


@api_view(["POST"])
def register(request):
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = profile.register_user(**s.validated_data)
    return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@api_view(["PATCH"])
def update_profile(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = ProfileSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = profile.update_profile(user, **s.validated_data)
    return Response(UserSerializer(user).data)


@api_view(["POST"])
def set_pin(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = PinSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    profile.set_pin(user, s.validated_data["pin"])
    return Response({"pin_set": True})


@api_view(["POST"])
def set_biometric(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = BiometricSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = profile.set_biometric(user, s.validated_data["enabled"])
    return Response({"biometric_enabled": user.biometric_enabled})


@api_view(["GET", "PATCH"])
def notification_preferences(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    if request.method == "PATCH":
        s = NotificationPreferenceSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        pref = profile.update_preferences(user, **s.validated_data)
    else:
        pref = profile.get_preferences(user)
    return Response(NotificationPreferenceSerializer(pref).data)


@api_view(["POST"])
def check_pin(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = PinSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response({"verified": profile.verify_pin(user, s.validated_data["pin"])})


@api_view(["GET"])
def notifications(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = NotificationQuerySerializer(data=request.query_params)
    s.is_valid(raise_exception=True)
    result = inbox.list_notifications(user, **s.validated_data)
    result["data"] = NotificationSerializer(result["data"], many=True).data
    return Response(result)


@api_view(["POST"])
def mark_notifications_read(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = MarkReadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response({"count": inbox.mark_read(user, s.validated_data["notification_ids"])})


@api_view(["POST"])
def mark_all_notifications_read(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    return Response({"count": inbox.mark_all_read(user)})


@api_view(["DELETE"])
def delete_notification(request, user_id, notification_id):
    user = get_object_or_404(AppUser, pk=user_id)
    inbox.delete_notification(user, notification_id)
    return Response(status=status.HTTP_204_NO_CONTENT)
