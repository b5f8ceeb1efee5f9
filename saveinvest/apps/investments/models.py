# saveinvest/investments/models.py
import uuid
from decimal import Decimal

from django.db import models
from django.db.models import DecimalField, Sum, Value
from django.db.models.functions import Coalesce

from saveinvest.apps.savings.models import Transaction
from saveinvest.apps.users.models import AppUser


class InvestmentProduct(models.Model):
    RISK_CHOICES = [("LOW", "Low"), ("MODERATE", "Moderate"), ("HIGH", "High")]
    name = models.CharField(max_length=128, unique=True)
    category = models.CharField(max_length=32, db_index=True)  # e.g., DEBT, EQUITY, HYBRID
    risk_level = models.CharField(max_length=16, choices=RISK_CHOICES, default="MODERATE")
    min_investment = models.DecimalField(max_digits=18, decimal_places=2, default=100)
    exit_load = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00")
    )  # % of the redeemed value kept by the fund
    feed_code = models.CharField(max_length=32, null=True, blank=True, unique=True)  # NAV feed scheme code
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


class NavHistory(models.Model):
    """Daily NAV per product; the latest row is the current price."""

    product = models.ForeignKey(
        InvestmentProduct, on_delete=models.CASCADE, related_name="nav_history"
    )
    nav = models.DecimalField(max_digits=18, decimal_places=4)
    date = models.DateField(db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["product", "date"], name="uniq_nav_per_day")
        ]
        indexes = [models.Index(fields=["product", "-date"])]


class AutoInvestRule(models.Model):
    """
    User-defined rule moving wallet money into a product.

    Sizing is a tagged variant: ``sizing_kind`` says whether ``sizing_value`` is a
    percentage of the wallet balance or a fixed amount. Rules are disabled or
    paused, never deleted.
    """

    TRIGGER_CHOICES = [("THRESHOLD", "Threshold"), ("SCHEDULED", "Scheduled")]
    SIZING_CHOICES = [("PERCENTAGE", "Percentage"), ("FIXED", "Fixed amount")]
    STATUS_CHOICES = [("ACTIVE", "Active"), ("PAUSED", "Paused")]

    user = models.ForeignKey(
        AppUser, on_delete=models.CASCADE, related_name="auto_invest_rules"
    )
    product = models.ForeignKey(
        InvestmentProduct, on_delete=models.PROTECT, related_name="auto_invest_rules"
    )
    trigger_type = models.CharField(max_length=16, choices=TRIGGER_CHOICES, db_index=True)
    trigger_value = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    sizing_kind = models.CharField(max_length=16, choices=SIZING_CHOICES)
    sizing_value = models.DecimalField(max_digits=18, decimal_places=2)
    enabled = models.BooleanField(default=True, db_index=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default="ACTIVE", db_index=True)
    # Explicit evaluation order within a user's rules
    sequence = models.PositiveIntegerField()
    last_executed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sequence", "id"]
        constraints = [
            models.UniqueConstraint(fields=["user", "sequence"], name="uniq_rule_sequence_per_user"),
            models.CheckConstraint(
                condition=models.Q(sizing_kind__in=["PERCENTAGE", "FIXED"]),
                name="auto_invest_rule_sizing_kind_valid",
            ),
            models.CheckConstraint(
                condition=models.Q(sizing_value__gt=0), name="auto_invest_rule_sizing_positive"
            ),
        ]

    @property
    def sizing(self):
        from saveinvest.apps.investments.services.sizing import sizing_from_model

        return sizing_from_model(self)

    @property
    def is_runnable(self) -> bool:
        return self.enabled and self.status == "ACTIVE"


class InvestmentQuerySet(models.QuerySet):
    def with_redeemed_units(self):
        return self.annotate(
            redeemed_units=Coalesce(
                Sum("redemptions__units"),
                Value(Decimal("0")),
                output_field=DecimalField(max_digits=24, decimal_places=6),
            )
        )


class Investment(models.Model):
    """
    Executed purchase. Never updated; valuation uses live NAV lookups and
    redemptions are separate rows, so the units still held are the purchased
    units minus the redeemed ones.
    """

    STATUS_CHOICES = [("ACTIVE", "Active")]
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(AppUser, on_delete=models.CASCADE, related_name="investments")
    product = models.ForeignKey(
        InvestmentProduct, on_delete=models.PROTECT, related_name="investments"
    )
    rule = models.ForeignKey(
        AutoInvestRule, on_delete=models.SET_NULL, null=True, blank=True, related_name="investments"
    )
    transaction = models.OneToOneField(
        Transaction, on_delete=models.PROTECT, related_name="investment"
    )
    amount_invested = models.DecimalField(max_digits=18, decimal_places=2)
    units = models.DecimalField(max_digits=24, decimal_places=6)
    purchase_nav = models.DecimalField(max_digits=18, decimal_places=4)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default="ACTIVE")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = InvestmentQuerySet.as_manager()

    class Meta:
        indexes = [models.Index(fields=["user", "product"])]

    def held_units(self) -> Decimal:
        redeemed = getattr(self, "redeemed_units", None)
        if redeemed is None:
            redeemed = self.redemptions.aggregate(total=Sum("units"))["total"] or Decimal("0")
        return self.units - redeemed


class Redemption(models.Model):
    """Units sold back from an Investment; the net amount is credited to the wallet."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(AppUser, on_delete=models.CASCADE, related_name="redemptions")
    investment = models.ForeignKey(
        Investment, on_delete=models.PROTECT, related_name="redemptions"
    )
    transaction = models.OneToOneField(
        Transaction, on_delete=models.PROTECT, related_name="redemption"
    )
    units = models.DecimalField(max_digits=24, decimal_places=6)
    nav = models.DecimalField(max_digits=18, decimal_places=4)
    gross_amount = models.DecimalField(max_digits=18, decimal_places=2)
    exit_load_amount = models.DecimalField(max_digits=18, decimal_places=2)
    amount = models.DecimalField(max_digits=18, decimal_places=2)  # credited to the wallet
    is_full = models.BooleanField(default=False)
    reason = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(units__gt=0), name="redemption_units_positive"
            )
        ]
