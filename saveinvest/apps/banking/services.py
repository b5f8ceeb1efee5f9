"""
Bank account management.

Invariants kept here:
- the first account a user adds becomes primary;
- at most one primary per user, switched inside one transaction;
- a primary account cannot be removed while the user has other accounts.

All mutating operations lock the user row first so concurrent requests for the
same user are serialized.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from saveinvest.apps.audit.models import DataAccessLog
from saveinvest.apps.banking.models import BankAccount
from saveinvest.apps.kyc.services.providers import (
    VerificationProvider,
    VerificationResult,
    bank_name_for_ifsc,
    get_provider,
)
from saveinvest.apps.users.crypto import encrypt_account_number, fingerprint
from saveinvest.apps.users.models import AppUser
from saveinvest.errors import (
    ConflictError,
    DataCorruption,
    NotFoundError,
    PrerequisiteError,
    ValidationError,
    VerificationFailedError,
)

logger = logging.getLogger(__name__)

IFSC_RE = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
ACCOUNT_RE = re.compile(r"^[0-9]{9,18}$")


class BankAccountService:
    def __init__(self, bank_provider: Optional[VerificationProvider] = None):
        self._provider = bank_provider

    @property
    def provider(self) -> VerificationProvider:
        if self._provider is None:
            self._provider = get_provider("bank")
        return self._provider

    @staticmethod
    def validate_details(account_number: str, ifsc_code: str, holder_name: str):
        account_number = (account_number or "").replace(" ", "")
        ifsc_code = (ifsc_code or "").strip().upper()
        holder_name = (holder_name or "").strip()
        if not ACCOUNT_RE.match(account_number):
            raise ValidationError("Account number must be 9 to 18 digits")
        if not IFSC_RE.match(ifsc_code):
            raise ValidationError("Invalid IFSC code format")
        if not 3 <= len(holder_name) <= 100:
            raise ValidationError("Account holder name must be 3 to 100 characters")
        return account_number, ifsc_code, holder_name

    def _lock_user(self, user: AppUser) -> AppUser:
        return AppUser.objects.select_for_update().get(pk=user.pk)

    def _get(self, user: AppUser, account_id: int) -> BankAccount:
        try:
            return BankAccount.objects.get(pk=account_id, user=user)
        except BankAccount.DoesNotExist:
            raise NotFoundError("Bank account not found")

    # ---------------------------
    # Create / read
    # ---------------------------

    def add_account(
        self, user: AppUser, account_number: str, ifsc_code: str, holder_name: str
    ) -> BankAccount:
        account_number, ifsc_code, holder_name = self.validate_details(
            account_number, ifsc_code, holder_name
        )
        digest = fingerprint(account_number)
        try:
            with transaction.atomic():
                self._lock_user(user)
                if BankAccount.objects.filter(
                    user=user, account_number_hash=digest, ifsc_code=ifsc_code
                ).exists():
                    raise ConflictError("This bank account is already added")
                is_first = not BankAccount.objects.filter(user=user).exists()
                account = BankAccount.objects.create(
                    user=user,
                    account_number_encrypted=encrypt_account_number(account_number),
                    account_number_hash=digest,
                    ifsc_code=ifsc_code,
                    holder_name=holder_name,
                    bank_name=bank_name_for_ifsc(ifsc_code),
                    is_primary=is_first,
                )
        except IntegrityError as e:
            raise ConflictError("This bank account is already added") from e
        logger.info(f"Bank account {account.id} added for user {user.id}")
        return account

    def find_or_create(
        self, user: AppUser, account_number: str, ifsc_code: str, holder_name: str
    ) -> BankAccount:
        existing = BankAccount.objects.filter(
            user=user, account_number_hash=fingerprint(account_number), ifsc_code=ifsc_code
        ).first()
        if existing:
            return existing
        return self.add_account(user, account_number, ifsc_code, holder_name)

    def describe(self, account: BankAccount) -> Dict[str, Any]:
        try:
            masked, corrupted = account.masked_number(), False
        except DataCorruption:
            logger.error(f"Bank account {account.id} has an unreadable account number")
            masked, corrupted = "****", True
        return {
            "id": account.id,
            "account_number": masked,
            "ifsc_code": account.ifsc_code,
            "holder_name": account.holder_name,
            "bank_name": account.bank_name,
            "is_primary": account.is_primary,
            "is_verified": account.is_verified,
            "corrupted": corrupted,
            "created_at": account.created_at.isoformat(),
        }

    def list_accounts(self, user: AppUser) -> List[Dict[str, Any]]:
        accounts = BankAccount.objects.filter(user=user).order_by("-is_primary", "created_at")
        return [self.describe(a) for a in accounts]

    def primary_account(self, user: AppUser) -> Optional[BankAccount]:
        return BankAccount.objects.filter(user=user, is_primary=True).first()

    # ---------------------------
    # Update / delete
    # ---------------------------

    def set_primary(self, user: AppUser, account_id: int) -> BankAccount:
        with transaction.atomic():
            self._lock_user(user)
            account = self._get(user, account_id)
            if account.is_primary:
                return account
            # Unset first so the one-primary constraint never sees two rows
            BankAccount.objects.filter(user=user, is_primary=True).update(is_primary=False)
            account.is_primary = True
            account.save(update_fields=["is_primary", "updated_at"])
        return account

    def update_account(self, user: AppUser, account_id: int, **fields) -> BankAccount:
        account = self._get(user, account_id)
        if account.is_verified:
            raise ValidationError("Cannot update verified bank account")

        holder_name = fields.get("holder_name") or account.holder_name
        ifsc_code = fields.get("ifsc_code") or account.ifsc_code
        _, ifsc_code, holder_name = self.validate_details(
            account.account_number(), ifsc_code, holder_name
        )
        account.holder_name = holder_name
        account.ifsc_code = ifsc_code
        account.bank_name = bank_name_for_ifsc(ifsc_code)
        try:
            account.save(update_fields=["holder_name", "ifsc_code", "bank_name", "updated_at"])
        except IntegrityError as e:
            raise ConflictError("This bank account is already added") from e
        return account

    def remove_account(self, user: AppUser, account_id: int) -> None:
        with transaction.atomic():
            self._lock_user(user)
            account = self._get(user, account_id)
            others = BankAccount.objects.filter(user=user).exclude(pk=account.pk)
            if account.is_primary and others.exists():
                raise PrerequisiteError(
                    "Cannot delete primary account. Please set another account as primary first.",
                    next_steps=["Set another account as primary"],
                )
            account.delete()
        logger.info(f"Bank account {account_id} removed for user {user.id}")

    # ---------------------------
    # Verification
    # ---------------------------

    def penny_drop(self, account_number: str, ifsc_code: str, holder_name: str) -> VerificationResult:
        result = self.provider.verify(
            {
                "account_number": account_number,
                "ifsc_code": ifsc_code,
                "holder_name": holder_name,
            }
        )
        if not result.verified:
            logger.info(f"Penny drop rejected for IFSC {ifsc_code}: {result.reason}")
            raise VerificationFailedError(result.reason or "Bank account verification failed")
        return result

    def mark_verified(self, account: BankAccount, bank_name: str = None) -> BankAccount:
        account.is_verified = True
        account.verified_at = timezone.now()
        if bank_name:
            account.bank_name = bank_name
        account.save(update_fields=["is_verified", "verified_at", "bank_name", "updated_at"])
        return account

    def verify_account(self, user: AppUser, account_id: int) -> Dict[str, Any]:
        from saveinvest.apps.kyc.models import KycDocument
        from saveinvest.apps.kyc.services.verification import mark_bank_verified

        account = self._get(user, account_id)
        if account.is_verified:
            return self.describe(account)

        doc = KycDocument.objects.get(user=user)
        if not doc.pan_verified:
            raise PrerequisiteError(
                "PAN verification required before bank verification",
                next_steps=["Verify PAN card"],
            )

        result = self.penny_drop(account.account_number(), account.ifsc_code, account.holder_name)
        with transaction.atomic():
            account = self.mark_verified(account, result.data.get("bank_name"))
            doc = KycDocument.objects.select_for_update().get(user=user)
            mark_bank_verified(doc, user)
        logger.info(f"Bank account {account.id} verified for user {user.id}")
        return self.describe(account)

    def reveal_account_number(self, account: BankAccount, actor: str = "system", purpose: str = "") -> str:
        number = account.account_number()
        DataAccessLog.objects.create(
            user=account.user,
            actor=actor,
            resource="banking.account_number",
            action="read",
            context={"account_id": account.id, "purpose": purpose},
        )
        return number
