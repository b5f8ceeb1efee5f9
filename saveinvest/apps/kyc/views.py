from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view
from rest_framework.response import Response

from saveinvest.apps.users.models import AppUser
from .serializers import (
    AadhaarInitiateSerializer,
    AadhaarVerifySerializer,
    AdminStatusSerializer,
    BankVerifySerializer,
    LivenessSerializer,
    PanSerializer,
)
from .services.verification import (
    KycVerificationService,
    admin_update_status,
    kyc_status,
)


def _service():
    return KycVerificationService()


@api_view(["GET"])
def status_view(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    return Response(kyc_status(user))


@api_view(["POST"])
def verify_pan(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = PanSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(_service().verify_pan(user, **s.validated_data))


@api_view(["POST"])
def initiate_aadhaar(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = AadhaarInitiateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(_service().initiate_aadhaar(user, s.validated_data["aadhaar_number"]))


@api_view(["POST"])
def verify_aadhaar(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = AadhaarVerifySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(_service().verify_aadhaar(user, **s.validated_data))


@api_view(["POST"])
def verify_bank(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = BankVerifySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(_service().verify_bank(user, **s.validated_data))


@api_view(["POST"])
def verify_liveness(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = LivenessSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(_service().verify_liveness(user, s.validated_data))


@api_view(["POST"])
def admin_status(request, user_id):
    # Mounted for back-office tooling; access control lives at the gateway
    user = get_object_or_404(AppUser, pk=user_id)
    s = AdminStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = admin_update_status(
        user, s.validated_data["status"], s.validated_data.get("rejection_reason")
    )
    return Response(kyc_status(user))
