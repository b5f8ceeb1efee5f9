"""
Auto-save on payments.

A successful payment moves ``percentage`` of its amount into the savings
wallet. The payment's SUCCESS status, its ``auto_save_amount`` stamp and the
wallet credit are written in one transaction: either all of them land or none.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from django.db import transaction

from saveinvest.apps.onboarding.services import require_payment_allowed
from saveinvest.apps.savings.models import SavingsConfig, Transaction
from saveinvest.apps.savings.services import ledger
from saveinvest.apps.users.models import AppUser, Notification
from saveinvest.errors import ValidationError

logger = logging.getLogger(__name__)


def compute_auto_save(amount, config: SavingsConfig) -> Decimal:
    """
    ``amount * percentage / 100`` rounded half-up to paise, capped by
    ``max_savings_per_transaction``. Zero when disabled or below the minimum.
    """
    amount = ledger.to_money(amount)
    if not config.auto_save_enabled or amount < config.min_transaction_amount:
        return Decimal("0.00")
    saved = ledger.to_money(amount * Decimal(config.percentage) / Decimal(100))
    if config.max_savings_per_transaction is not None:
        saved = min(saved, ledger.to_money(config.max_savings_per_transaction))
    return saved


def create_pending_payment(user: AppUser, amount, description: str = "") -> Transaction:
    amount = ledger.to_money(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be positive")
    # Payment caps are enforced before auto-save ever sees the amount
    require_payment_allowed(user, amount)
    return Transaction.objects.create(
        user=user, type="PAYMENT", amount=amount, status="PENDING", description=description
    )


def complete_payment(payment: Transaction) -> Transaction:
    """Marks a pending payment successful and applies auto-save atomically."""
    user = payment.user
    with transaction.atomic():
        wallet = ledger.lock_wallet(user)
        payment = Transaction.objects.select_for_update().get(pk=payment.pk)
        payment.transition_to("SUCCESS")

        config, _ = SavingsConfig.objects.get_or_create(user=user)
        auto_save = compute_auto_save(payment.amount, config)
        payment.auto_save_amount = auto_save
        payment.save(update_fields=["status", "auto_save_amount", "updated_at"])

        if auto_save > 0:
            ledger.credit(
                user,
                auto_save,
                txn_type="DEPOSIT",
                description=f"Auto-save from payment {payment.id}",
                metadata={"auto_save": True, "source_transaction_id": str(payment.id)},
                source=payment,
                wallet=wallet,
            )
            Notification.objects.create(
                user=user,
                kind="savings_auto_saved",
                payload={
                    "payment_amount": str(payment.amount),
                    "auto_save_amount": str(auto_save),
                    "balance": str(wallet.balance),
                },
            )

    logger.info(f"Payment {payment.id} completed for user {user.id}; auto-saved {auto_save}")
    if auto_save > 0:
        evaluate_threshold_rules(user)
    return payment


def fail_payment(payment: Transaction, reason: str = "") -> Transaction:
    with transaction.atomic():
        payment = Transaction.objects.select_for_update().get(pk=payment.pk)
        payment.transition_to("FAILED")
        payment.metadata = {**payment.metadata, "failure_reason": reason}
        payment.save(update_fields=["status", "metadata", "updated_at"])
    logger.info(f"Payment {payment.id} failed: {reason}")
    return payment


def record_payment(user: AppUser, amount, description: str = "") -> Dict[str, Any]:
    """Records a gateway-confirmed payment and returns the auto-save outcome."""
    payment = create_pending_payment(user, amount, description)
    payment = complete_payment(payment)
    return {
        "transaction_id": str(payment.id),
        "amount": payment.amount,
        "auto_save_amount": payment.auto_save_amount,
        "status": payment.status,
    }


def evaluate_threshold_rules(user: AppUser) -> Optional[Any]:
    # Runs after the credit committed; a rule failure never undoes the payment
    from saveinvest.apps.investments.services.engine import evaluate_after_credit

    try:
        return evaluate_after_credit(user)
    except Exception:
        logger.exception(f"Threshold auto-invest evaluation failed for user {user.id}")
        return None
