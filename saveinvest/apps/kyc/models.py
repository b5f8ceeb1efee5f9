# saveinvest/kyc/models.py
from django.db import models
from saveinvest.apps.users.models import AppUser


class KycDocument(models.Model):
    """Verification facts for a user. Level and status are derived from these."""

    user = models.OneToOneField(AppUser, on_delete=models.CASCADE, related_name="kyc")
    pan_number = models.CharField(max_length=10, unique=True, null=True, blank=True)
    pan_name = models.CharField(max_length=128, null=True, blank=True)
    pan_verified = models.BooleanField(default=False)
    aadhaar_encrypted = models.TextField(null=True, blank=True)  # iv:ciphertext hex
    aadhaar_hash = models.CharField(max_length=64, unique=True, null=True, blank=True)
    aadhaar_last4 = models.CharField(max_length=4, null=True, blank=True)
    aadhaar_verified = models.BooleanField(default=False)
    liveness_score = models.PositiveSmallIntegerField(null=True, blank=True)
    liveness_verified = models.BooleanField(default=False)
    face_matched = models.BooleanField(default=False)
    bank_verified = models.BooleanField(default=False)
    rejection_reason = models.TextField(null=True, blank=True)
    provider_data = models.JSONField(default=dict, blank=True)  # name/dob from providers
    verified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"KYC for {self.user_id}"
