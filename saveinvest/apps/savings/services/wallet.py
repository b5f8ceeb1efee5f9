"""Manual wallet operations and auto-save configuration."""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from django.conf import settings
from django.db import transaction

from saveinvest.apps.banking.models import BankAccount
from saveinvest.apps.banking.services import BankAccountService
from saveinvest.apps.investments.models import AutoInvestRule
from saveinvest.apps.onboarding.services import require_withdrawal_allowed
from saveinvest.apps.savings.models import SavingsConfig, SavingsWallet, Transaction
from saveinvest.apps.savings.services import ledger
from saveinvest.apps.savings.services.autosave import evaluate_threshold_rules
from saveinvest.apps.users.models import AppUser, Notification
from saveinvest.errors import NotFoundError, PrerequisiteError, ValidationError

logger = logging.getLogger(__name__)


def get_wallet(user: AppUser) -> SavingsWallet:
    wallet, _ = SavingsWallet.objects.get_or_create(user=user)
    return wallet


def get_config(user: AppUser) -> SavingsConfig:
    config, _ = SavingsConfig.objects.get_or_create(user=user)
    return config


def update_config(user: AppUser, **fields) -> SavingsConfig:
    config = get_config(user)

    if "percentage" in fields and fields["percentage"] is not None:
        pct = int(fields["percentage"])
        if not settings.AUTO_SAVE_MIN_PERCENTAGE <= pct <= settings.AUTO_SAVE_MAX_PERCENTAGE:
            raise ValidationError(
                f"Auto-save percentage must be between {settings.AUTO_SAVE_MIN_PERCENTAGE} "
                f"and {settings.AUTO_SAVE_MAX_PERCENTAGE}"
            )
        config.percentage = pct
    if "auto_save_enabled" in fields and fields["auto_save_enabled"] is not None:
        config.auto_save_enabled = bool(fields["auto_save_enabled"])
    if "min_transaction_amount" in fields and fields["min_transaction_amount"] is not None:
        minimum = ledger.to_money(fields["min_transaction_amount"])
        if minimum < 0:
            raise ValidationError("Minimum transaction amount cannot be negative")
        config.min_transaction_amount = minimum
    if "max_savings_per_transaction" in fields:
        cap = fields["max_savings_per_transaction"]
        if cap is not None:
            cap = ledger.to_money(cap)
            if cap <= 0:
                raise ValidationError("Maximum savings per transaction must be positive")
        config.max_savings_per_transaction = cap

    config.save()
    return config


def deposit(user: AppUser, amount, description: str = "Manual deposit") -> Transaction:
    with transaction.atomic():
        wallet, txn = ledger.credit(
            user, amount, txn_type="DEPOSIT", description=description, metadata={"manual": True}
        )
        Notification.objects.create(
            user=user,
            kind="deposit_received",
            payload={"amount": str(txn.amount), "balance": str(wallet.balance)},
        )
    evaluate_threshold_rules(user)
    return txn


def withdraw(user: AppUser, amount, bank_account_id: Optional[int] = None) -> Transaction:
    """Debits the wallet towards a verified bank account (primary unless given)."""
    require_withdrawal_allowed(user)

    accounts = BankAccount.objects.filter(user=user, is_verified=True)
    if bank_account_id is not None:
        account = accounts.filter(pk=bank_account_id).first()
        if account is None:
            raise NotFoundError("Verified bank account not found")
    else:
        account = accounts.filter(is_primary=True).first() or accounts.first()
    if account is None:
        raise PrerequisiteError(
            "A verified bank account is required for withdrawals",
            next_steps=["Add bank account for withdrawals"],
        )

    banking = BankAccountService()
    masked = account.masked_number()
    with transaction.atomic():
        wallet, txn = ledger.debit(
            user,
            amount,
            txn_type="WITHDRAWAL",
            description=f"Withdrawal to {account.bank_name or 'bank'} {masked}",
            metadata={"bank_account_id": account.id},
        )
        # Payout instructions need the clear account number
        banking.reveal_account_number(account, purpose=f"withdrawal:{txn.id}")
        Notification.objects.create(
            user=user,
            kind="withdrawal_initiated",
            payload={"amount": str(txn.amount), "account": masked},
        )
    logger.info(f"Withdrawal {txn.id} of {txn.amount} for user {user.id}")
    return txn


def list_transactions(user: AppUser, txn_type: Optional[str] = None, limit: int = 50):
    qs = Transaction.objects.filter(user=user)
    if txn_type:
        txn_type = txn_type.upper()
        if txn_type not in dict(Transaction.TYPE_CHOICES):
            raise ValidationError("Unknown transaction type")
        qs = qs.filter(type=txn_type)
    return list(qs.order_by("-created_at")[:limit])


def wallet_summary(user: AppUser) -> dict:
    wallet = get_wallet(user)
    return {
        "balance": wallet.balance,
        "total_saved": wallet.total_saved,
        "total_invested": wallet.total_invested,
        "total_withdrawn": wallet.total_withdrawn,
        "updated_at": wallet.updated_at,
    }

def savings_stats(user: AppUser) -> dict:
    """
    Wallet totals, the auto-save rate and how enabled percentage rules split
    the wallet between products (normalized to 100).
    """
    wallet = get_wallet(user)
    config = get_config(user)
    rules = AutoInvestRule.objects.filter(user=user, enabled=True).select_related("product")

    weights = {}
    for rule in rules:
        if rule.sizing_kind == "PERCENTAGE":
            name = rule.product.name
            weights[name] = weights.get(name, Decimal("0")) + rule.sizing_value
    total = sum(weights.values(), Decimal("0"))
    allocation = {}
    for name, weight in weights.items():
        share = (weight / total * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        allocation[name] = int(share)

    return {
        "current_balance": wallet.balance,
        "total_saved": wallet.total_saved,
        "total_withdrawn": wallet.total_withdrawn,
        "total_invested": wallet.total_invested,
        "savings_percentage": config.percentage,
        "active_investment_rules": len(rules),
        "investment_allocation": allocation,
    }
