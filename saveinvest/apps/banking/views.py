from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from saveinvest.apps.users.models import AppUser
from .serializers import BankAccountCreateSerializer, BankAccountUpdateSerializer
from .services import BankAccountService


@api_view(["GET", "POST"])
def bank_accounts(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    service = BankAccountService()
    if request.method == "POST":
        s = BankAccountCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        account = service.add_account(user, **s.validated_data)
        return Response(service.describe(account), status=status.HTTP_201_CREATED)
    return Response(service.list_accounts(user))


@api_view(["PATCH", "DELETE"])
def bank_account_detail(request, user_id, account_id):
    user = get_object_or_404(AppUser, pk=user_id)
    service = BankAccountService()
    if request.method == "DELETE":
        service.remove_account(user, account_id)
        return Response(status=status.HTTP_204_NO_CONTENT)
    s = BankAccountUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    account = service.update_account(user, account_id, **s.validated_data)
    return Response(service.describe(account))


@api_view(["POST"])
def set_primary(request, user_id, account_id):
    user = get_object_or_404(AppUser, pk=user_id)
    service = BankAccountService()
    return Response(service.describe(service.set_primary(user, account_id)))


@api_view(["POST"])
def verify_account(request, user_id, account_id):
    user = get_object_or_404(AppUser, pk=user_id)
    return Response(BankAccountService().verify_account(user, account_id))
