# saveinvest/savings/models.py
import uuid
from decimal import Decimal

from django.db import models

from saveinvest.apps.users.models import AppUser
from saveinvest.errors import ConflictError


class SavingsWallet(models.Model):
    """Per-user balance. Only the ledger service mutates it, under a row lock."""

    user = models.OneToOneField(
        AppUser, on_delete=models.CASCADE, related_name="savings_wallet"
    )
    balance = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    total_saved = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    total_withdrawn = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    total_invested = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(balance__gte=0), name="savings_wallet_balance_non_negative"
            )
        ]


class SavingsConfig(models.Model):
    user = models.OneToOneField(
        AppUser, on_delete=models.CASCADE, related_name="savings_config"
    )
    auto_save_enabled = models.BooleanField(default=True)
    percentage = models.PositiveSmallIntegerField(default=10)  # 1-50
    min_transaction_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("10.00")
    )
    max_savings_per_transaction = models.DecimalField(
        max_digits=18, decimal_places=2, null=True, blank=True
    )
    updated_at = models.DateTimeField(auto_now=True)


class Transaction(models.Model):
    """Append-only money movement log. Only ``status`` changes after creation."""

    TYPE_CHOICES = [
        ("DEPOSIT", "Deposit"),
        ("PAYMENT", "Payment"),
        ("INVESTMENT", "Investment"),
        ("WITHDRAWAL", "Withdrawal"),
        ("REDEMPTION", "Redemption"),
    ]
    STATUS_CHOICES = [
        ("PENDING", "Pending"),
        ("SUCCESS", "Success"),
        ("FAILED", "Failed"),
    ]
    ALLOWED_TRANSITIONS = {"PENDING": {"SUCCESS", "FAILED"}}

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        AppUser, on_delete=models.CASCADE, related_name="transactions"
    )
    type = models.CharField(max_length=16, choices=TYPE_CHOICES, db_index=True)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    auto_save_amount = models.DecimalField(
        max_digits=18, decimal_places=2, null=True, blank=True
    )  # PAYMENT rows only
    status = models.CharField(
        max_length=16, choices=STATUS_CHOICES, default="PENDING", db_index=True
    )
    description = models.CharField(max_length=255, blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)
    # Auto-save deposits point at the payment that produced them
    source = models.ForeignKey(
        "self", on_delete=models.PROTECT, null=True, blank=True, related_name="derived"
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=["user", "type", "status"])]
        ordering = ["-created_at"]

    def transition_to(self, status: str) -> None:
        if status not in self.ALLOWED_TRANSITIONS.get(self.status, set()):
            raise ConflictError(
                f"Transaction {self.id} cannot move from {self.status} to {status}"
            )
        self.status = status
