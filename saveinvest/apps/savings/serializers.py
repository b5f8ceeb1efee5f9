from decimal import Decimal

from rest_framework import serializers

from .models import SavingsConfig, Transaction


class AmountSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=Decimal("0.01"))
    description = serializers.CharField(max_length=255, required=False)


class WithdrawalSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=Decimal("0.01"))
    bank_account_id = serializers.IntegerField(required=False)


class SavingsConfigSerializer(serializers.ModelSerializer):
    class Meta:
        model = SavingsConfig
        fields = (
            "auto_save_enabled",
            "percentage",
            "min_transaction_amount",
            "max_savings_per_transaction",
        )
        extra_kwargs = {"max_savings_per_transaction": {"allow_null": True}}


class TransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Transaction
        fields = (
            "id",
            "type",
            "amount",
            "auto_save_amount",
            "status",
            "description",
            "metadata",
            "source",
            "created_at",
        )
