from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from saveinvest.apps.users.models import AppUser
from .serializers import (
    AmountSerializer,
    SavingsConfigSerializer,
    TransactionSerializer,
    WithdrawalSerializer,
)
from .services import autosave, wallet


@api_view(["GET"])
def wallet_view(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    return Response(wallet.wallet_summary(user))


@api_view(["GET"])
def savings_stats(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    return Response(wallet.savings_stats(user))


@api_view(["GET", "PATCH"])
def savings_config(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    if request.method == "PATCH":
        s = SavingsConfigSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        config = wallet.update_config(user, **s.validated_data)
    else:
        config = wallet.get_config(user)
    return Response(SavingsConfigSerializer(config).data)


@api_view(["POST"])
def record_payment(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = AmountSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    result = autosave.record_payment(
        user, s.validated_data["amount"], s.validated_data.get("description", "")
    )
    return Response(result, status=status.HTTP_201_CREATED)


@api_view(["POST"])
def deposit(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = AmountSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    txn = wallet.deposit(
        user, s.validated_data["amount"], s.validated_data.get("description") or "Manual deposit"
    )
    return Response(TransactionSerializer(txn).data, status=status.HTTP_201_CREATED)


@api_view(["POST"])
def withdraw(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    s = WithdrawalSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    txn = wallet.withdraw(
        user, s.validated_data["amount"], s.validated_data.get("bank_account_id")
    )
    return Response(TransactionSerializer(txn).data, status=status.HTTP_201_CREATED)


@api_view(["GET"])
def transactions(request, user_id):
    user = get_object_or_404(AppUser, pk=user_id)
    txns = wallet.list_transactions(user, request.query_params.get("type"))
    return Response(TransactionSerializer(txns, many=True).data)
