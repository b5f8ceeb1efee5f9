import uuid
from django.db import models
from saveinvest.apps.users.models import AppUser


class DataAccessLog(models.Model):
    """Every write to KYC facts and every read of decrypted account data."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(AppUser, on_delete=models.SET_NULL, null=True, related_name="data_access_logs")
    actor = models.CharField(max_length=64, db_index=True)  # system|admin|user
    resource = models.CharField(max_length=64, db_index=True)  # e.g., kyc.pan, banking.account_number
    action = models.CharField(max_length=32, db_index=True)    # read|write|update|delete
    context = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
