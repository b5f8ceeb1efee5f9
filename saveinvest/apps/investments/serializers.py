from decimal import Decimal

from rest_framework import serializers

from .models import Investment, InvestmentProduct, Redemption


class ProductSerializer(serializers.ModelSerializer):
    current_nav = serializers.SerializerMethodField()

    class Meta:
        model = InvestmentProduct
        fields = (
            "id",
            "name",
            "category",
            "risk_level",
            "min_investment",
            "exit_load",
            "current_nav",
        )

    def get_current_nav(self, obj):
        navs = self.context.get("navs") or {}
        nav = navs.get(obj.id)
        return str(nav) if nav is not None else None


class RuleCreateSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    trigger_type = serializers.ChoiceField(choices=["THRESHOLD", "SCHEDULED"])
    trigger_value = serializers.DecimalField(
        max_digits=18, decimal_places=2, required=False, allow_null=True
    )
    investment_percentage = serializers.DecimalField(
        max_digits=5, decimal_places=2, required=False, allow_null=True
    )
    investment_amount = serializers.DecimalField(
        max_digits=18, decimal_places=2, required=False, allow_null=True
    )


class RuleUpdateSerializer(RuleCreateSerializer):
    product_id = serializers.IntegerField(required=False)
    trigger_type = serializers.ChoiceField(choices=["THRESHOLD", "SCHEDULED"], required=False)
    enabled = serializers.BooleanField(required=False)
    status = serializers.ChoiceField(choices=["ACTIVE", "PAUSED"], required=False)


class EvaluateSerializer(serializers.Serializer):
    rule_ids = serializers.ListField(child=serializers.IntegerField(), required=False)


class PurchaseSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=18, decimal_places=2, min_value=Decimal("0.01"))


class InvestmentSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = Investment
        fields = (
            "id",
            "product",
            "product_name",
            "rule",
            "amount_invested",
            "units",
            "purchase_nav",
            "status",
            "created_at",
        )


class RedeemSerializer(serializers.Serializer):
    investment_id = serializers.UUIDField()
    amount = serializers.DecimalField(
        max_digits=18,
        decimal_places=2,
        min_value=Decimal("0.01"),
        required=False,
        allow_null=True,
    )
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)


class RedemptionSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="investment.product.name", read_only=True)
    balance = serializers.SerializerMethodField()

    class Meta:
        model = Redemption
        fields = (
            "id",
            "investment",
            "product_name",
            "transaction",
            "units",
            "nav",
            "gross_amount",
            "exit_load_amount",
            "amount",
            "is_full",
            "reason",
            "balance",
            "created_at",
        )

    def get_balance(self, obj):
        balance = self.context.get("balance")
        return str(balance) if balance is not None else None


class NavHistoryQuerySerializer(serializers.Serializer):
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    days = serializers.IntegerField(min_value=1, max_value=3650, default=30)
