from django.shortcuts import get_object_or_404
from rest_framework.decorators import api_view
from rest_framework.response import Response

from saveinvest.apps.users.models import AppUser
from saveinvest.errors import ValidationError
from . import services


@api_view(["GET"])
def savings_trend(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    try:
        months = int(request.query_params.get("months", 6))
    except ValueError:
        raise ValidationError("months must be an integer")
    return Response(services.savings_trend(user, months))


@api_view(["GET"])
def investment_summary(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    return Response(services.investment_summary(user))
