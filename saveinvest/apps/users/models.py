# saveinvest/users/models.py
import uuid
from django.db import models


class AppUser(models.Model):
    KYC_STATUS_CHOICES = [
        ("PENDING", "Pending"),
        ("IN_PROGRESS", "In progress"),
        ("UNDER_REVIEW", "Under review"),
        ("APPROVED", "Approved"),
        ("REJECTED", "Rejected"),
    ]
    mobile = models.CharField(max_length=15, unique=True, db_index=True)
    name = models.CharField(max_length=128, null=True, blank=True)
    email = models.EmailField(null=True, blank=True)
    pin_hash = models.CharField(max_length=128, null=True, blank=True)
    biometric_enabled = models.BooleanField(default=False)
    # Derived from KycDocument facts; written only by KYC services
    kyc_level = models.PositiveSmallIntegerField(default=0, db_index=True)
    kyc_status = models.CharField(
        max_length=16, choices=KYC_STATUS_CHOICES, default="PENDING", db_index=True
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.display_name()

    def display_name(self):
        return self.name or self.mobile

    @property
    def profile_complete(self) -> bool:
        return bool(self.name and self.email and self.mobile)

    @property
    def pin_set(self) -> bool:
        return bool(self.pin_hash)


class NotificationPreference(models.Model):
    """Per-user delivery switches, one row per user."""

    user = models.OneToOneField(
        AppUser, on_delete=models.CASCADE, related_name="notification_preference"
    )
    push_enabled = models.BooleanField(default=True)
    savings_alerts = models.BooleanField(default=True)
    investment_alerts = models.BooleanField(default=True)
    kyc_alerts = models.BooleanField(default=True)
    transaction_alerts = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Notification kind prefix -> preference flag
    CATEGORY_FLAGS = {
        "kyc": "kyc_alerts",
        "savings": "savings_alerts",
        "investment": "investment_alerts",
        "auto_invest": "investment_alerts",
        "payment": "transaction_alerts",
        "withdrawal": "transaction_alerts",
        "deposit": "transaction_alerts",
    }

    def allows(self, kind: str) -> bool:
        if not self.push_enabled:
            return False
        for prefix, flag in self.CATEGORY_FLAGS.items():
            if kind.startswith(prefix):
                return getattr(self, flag)
        return True


class Notification(models.Model):
    """Outbound user notifications, delivered by a Celery task after commit."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        AppUser, on_delete=models.CASCADE, related_name="notifications"
    )
    kind = models.CharField(max_length=32, db_index=True)  # e.g., kyc_level_up
    payload = models.JSONField(default=dict, blank=True)
    sent = models.BooleanField(default=False, db_index=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [models.Index(fields=["user", "kind", "sent"])]
        ordering = ["-created_at"]
