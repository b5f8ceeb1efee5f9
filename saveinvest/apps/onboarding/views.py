from decimal import Decimal, InvalidOperation

from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view
from rest_framework.response import Response

from saveinvest.apps.users.models import AppUser
from saveinvest.errors import ValidationError
from . import services


@api_view(["GET"])
def onboarding_status(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    return Response(services.get_status(user))


@api_view(["GET"])
def kyc_requirement(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    raw_amount = request.query_params.get("amount")
    amount = None
    if raw_amount not in (None, ""):
        try:
            amount = Decimal(raw_amount)
        except InvalidOperation:
            raise ValidationError("Invalid amount")
    req = services.check_requirement(user, request.query_params.get("action"), amount)
    return Response(req.as_dict())
