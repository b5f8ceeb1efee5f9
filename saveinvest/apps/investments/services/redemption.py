"""Selling units back into the savings wallet."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from django.db import transaction

from saveinvest.apps.investments.models import Investment, Redemption
from saveinvest.apps.investments.services.nav import NavFeed
from saveinvest.apps.investments.services.purchase import compute_units
from saveinvest.apps.savings.services import ledger
from saveinvest.apps.users.models import AppUser, Notification
from saveinvest.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def redeem(
    user: AppUser,
    investment_id,
    amount=None,
    reason: str = "",
    nav_feed: Optional[NavFeed] = None,
) -> Redemption:
    """
    Redeems ``amount`` worth of an investment at the current NAV, or all units
    still held when ``amount`` is empty or reaches the current value.

    The product's exit load is deducted and the rest is credited to the wallet.
    The Investment row is left untouched; the Redemption records the units sold.
    """
    if amount is not None:
        amount = ledger.to_money(amount)
        if amount <= 0:
            raise ValidationError("Redemption amount must be positive")
    nav_feed = nav_feed or NavFeed()

    with transaction.atomic():
        # The wallet lock serializes redemptions of the same user
        wallet = ledger.lock_wallet(user)
        investment = (
            Investment.objects.select_related("product")
            .filter(pk=investment_id, user=user)
            .first()
        )
        if investment is None:
            raise NotFoundError("Investment not found")
        held = investment.held_units()
        if held <= 0:
            raise ValidationError("Investment is already fully redeemed")

        product = investment.product
        nav = nav_feed.current_nav(product)
        current_value = ledger.to_money(held * nav)

        is_full = amount is None or amount >= current_value
        if is_full:
            units, gross = held, current_value
        else:
            units, gross = compute_units(amount, nav), amount
            if units <= 0:
                raise ValidationError("Redemption amount is too small for the current NAV")

        exit_load_amount = ledger.to_money(gross * product.exit_load / Decimal("100"))
        net = gross - exit_load_amount
        if net <= 0:
            raise ValidationError("Nothing left to redeem after the exit load")

        _, txn = ledger.credit(
            user,
            net,
            txn_type="REDEMPTION",
            description=reason
            or f"{'Full' if is_full else 'Partial'} redemption from {product.name}",
            metadata={
                "investment_id": str(investment.id),
                "product_id": product.id,
                "units": str(units),
                "nav": str(nav),
                "exit_load": str(exit_load_amount),
                "redemption_type": "FULL" if is_full else "PARTIAL",
            },
            wallet=wallet,
        )
        redemption = Redemption.objects.create(
            user=user,
            investment=investment,
            transaction=txn,
            units=units,
            nav=nav,
            gross_amount=gross,
            exit_load_amount=exit_load_amount,
            amount=txn.amount,
            is_full=is_full,
            reason=reason or "",
        )
        Notification.objects.create(
            user=user,
            kind="investment_redeemed",
            payload={
                "amount": str(redemption.amount),
                "product": product.name,
                "units": str(units),
                "balance": str(wallet.balance),
            },
        )

    logger.info(
        f"User {user.id} redeemed {units} units of {product.name} "
        f"for {redemption.amount} (exit load {exit_load_amount})"
    )
    return redemption
