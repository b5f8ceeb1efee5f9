"""
Wallet ledger.

Every balance change goes through ``credit`` or ``debit``. Both expect to run
inside ``transaction.atomic()`` and take the wallet row lock themselves, so a
concurrent auto-save credit and auto-invest debit for the same user serialize
instead of losing an update. Each change writes the Transaction that caused it.

Rounding: all amounts are quantized to 2 decimal places with ROUND_HALF_UP.
"""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from django.db import transaction
from django.db.models import F

from saveinvest.apps.savings.models import SavingsWallet, Transaction
from saveinvest.apps.users.models import AppUser
from saveinvest.errors import InsufficientFundsError, ValidationError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Transaction type -> wallet running total it feeds
TOTALS = {
    "DEPOSIT": "total_saved",
    "INVESTMENT": "total_invested",
    "WITHDRAWAL": "total_withdrawn",
    "REDEMPTION": "total_withdrawn",
}


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def lock_wallet(user: AppUser) -> SavingsWallet:
    """Row-locks the user's wallet. Caller must be inside an atomic block."""
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError("lock_wallet must be called inside transaction.atomic()")
    wallet, _ = SavingsWallet.objects.select_for_update().get_or_create(user=user)
    return wallet


def _apply(
    wallet: SavingsWallet,
    delta: Decimal,
    txn_type: str,
    amount: Decimal,
    description: str,
    metadata: Optional[dict],
    source: Optional[Transaction],
) -> Transaction:
    txn = Transaction.objects.create(
        user_id=wallet.user_id,
        type=txn_type,
        amount=amount,
        status="SUCCESS",
        description=description,
        metadata=metadata or {},
        source=source,
    )
    fields = {"balance": F("balance") + delta}
    total = TOTALS.get(txn_type)
    if total:
        fields[total] = F(total) + amount
    SavingsWallet.objects.filter(pk=wallet.pk).update(**fields)
    wallet.refresh_from_db(fields=["balance", "total_saved", "total_invested", "total_withdrawn"])
    return txn


def credit(
    user: AppUser,
    amount,
    txn_type: str = "DEPOSIT",
    description: str = "",
    metadata: Optional[dict] = None,
    source: Optional[Transaction] = None,
    wallet: Optional[SavingsWallet] = None,
) -> tuple[SavingsWallet, Transaction]:
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Amount must be positive")
    wallet = wallet or lock_wallet(user)
    txn = _apply(wallet, amount, txn_type, amount, description, metadata, source)
    logger.debug(f"Credited {amount} to wallet of user {user.id} ({txn_type})")
    return wallet, txn


def debit(
    user: AppUser,
    amount,
    txn_type: str,
    description: str = "",
    metadata: Optional[dict] = None,
    wallet: Optional[SavingsWallet] = None,
) -> tuple[SavingsWallet, Transaction]:
    """Debits ``amount``. Raises InsufficientFundsError rather than clamping."""
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Amount must be positive")
    wallet = wallet or lock_wallet(user)
    if amount > wallet.balance:
        raise InsufficientFundsError(
            f"Insufficient balance: requested {amount}, available {wallet.balance}"
        )
    txn = _apply(wallet, -amount, txn_type, amount, description, metadata, None)
    logger.debug(f"Debited {amount} from wallet of user {user.id} ({txn_type})")
    return wallet, txn
