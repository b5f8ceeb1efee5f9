# saveinvest/banking/models.py
from django.db import models
from saveinvest.apps.users.crypto import decrypt_account_number, mask_account_number
from saveinvest.apps.users.models import AppUser


class BankAccount(models.Model):
    """Withdrawal destination. The account number is stored only encrypted."""

    user = models.ForeignKey(
        AppUser, on_delete=models.CASCADE, related_name="bank_accounts"
    )
    account_number_encrypted = models.TextField()  # iv:ciphertext hex
    account_number_hash = models.CharField(max_length=64, db_index=True)
    ifsc_code = models.CharField(max_length=11)
    holder_name = models.CharField(max_length=100)
    bank_name = models.CharField(max_length=128, null=True, blank=True)
    is_primary = models.BooleanField(default=False)
    is_verified = models.BooleanField(default=False)
    verified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=["user", "is_primary"])]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "account_number_hash", "ifsc_code"],
                name="uniq_bank_account_per_user",
            ),
            models.UniqueConstraint(
                fields=["user"],
                condition=models.Q(is_primary=True),
                name="one_primary_bank_account_per_user",
            ),
        ]

    def account_number(self) -> str:
        return decrypt_account_number(self.account_number_encrypted)

    def masked_number(self) -> str:
        return mask_account_number(self.account_number())
