"""Investment purchases, shared by manual buys and rule executions."""
from __future__ import annotations

import logging
from decimal import ROUND_DOWN, Decimal
from typing import Optional

from django.db import transaction

from saveinvest.apps.investments.models import AutoInvestRule, Investment, InvestmentProduct
from saveinvest.apps.investments.services.nav import NavFeed
from saveinvest.apps.onboarding.services import require_investment_allowed
from saveinvest.apps.savings.models import SavingsWallet
from saveinvest.apps.savings.services import ledger
from saveinvest.apps.users.models import AppUser, Notification
from saveinvest.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# Units are truncated so the recorded holding never exceeds what was paid for
UNITS_PLACES = Decimal("0.000001")


def compute_units(amount: Decimal, nav: Decimal) -> Decimal:
    return (Decimal(amount) / Decimal(nav)).quantize(UNITS_PLACES, rounding=ROUND_DOWN)


def execute_purchase(
    user: AppUser,
    product: InvestmentProduct,
    amount: Decimal,
    nav_feed: NavFeed,
    wallet: SavingsWallet,
    rule: Optional[AutoInvestRule] = None,
) -> Investment:
    """
    Debits ``wallet`` and records the Investment.

    Must run inside ``transaction.atomic()`` with ``wallet`` locked. The NAV is
    read first so a missing price aborts before any money moves.
    """
    nav = nav_feed.current_nav(product)
    _, txn = ledger.debit(
        user,
        amount,
        txn_type="INVESTMENT",
        description=f"Investment in {product.name}",
        metadata={
            "product_id": product.id,
            "rule_id": rule.id if rule else None,
            "nav": str(nav),
        },
        wallet=wallet,
    )
    investment = Investment.objects.create(
        user=user,
        product=product,
        rule=rule,
        transaction=txn,
        amount_invested=txn.amount,
        units=compute_units(txn.amount, nav),
        purchase_nav=nav,
    )
    Notification.objects.create(
        user=user,
        kind="auto_invest_executed" if rule else "investment_purchased",
        payload={
            "amount": str(investment.amount_invested),
            "product": product.name,
            "units": str(investment.units),
            "nav": str(nav),
            "rule_id": rule.id if rule else None,
        },
    )
    return investment


def purchase(
    user: AppUser, product_id: int, amount, nav_feed: Optional[NavFeed] = None
) -> Investment:
    """Manual purchase from the wallet. Requires full KYC."""
    require_investment_allowed(user)

    product = InvestmentProduct.objects.filter(pk=product_id).first()
    if product is None:
        raise NotFoundError("Investment product not found")
    if not product.is_active:
        raise ValidationError("Investment product is not available")

    amount = ledger.to_money(amount)
    if amount < product.min_investment:
        raise ValidationError(f"Minimum investment for {product.name} is ₹{product.min_investment}")

    nav_feed = nav_feed or NavFeed()
    with transaction.atomic():
        wallet = ledger.lock_wallet(user)
        investment = execute_purchase(user, product, amount, nav_feed, wallet)
    logger.info(
        f"User {user.id} invested {investment.amount_invested} in {product.name} "
        f"({investment.units} units)"
    )
    return investment


def portfolio(user: AppUser, nav_feed: Optional[NavFeed] = None) -> dict:
    """
    Units still held, valued at the live NAV; falls back to purchase NAV when
    none is available. Partly redeemed investments keep a pro-rata cost basis
    and fully redeemed ones are left out.
    """
    nav_feed = nav_feed or NavFeed()
    investments = [
        inv
        for inv in Investment.objects.filter(user=user, status="ACTIVE")
        .with_redeemed_units()
        .select_related("product")
        .order_by("-created_at")
        if inv.held_units() > 0
    ]
    navs = nav_feed.current_navs({i.product for i in investments})

    holdings = []
    total_invested = Decimal("0.00")
    total_value = Decimal("0.00")
    for inv in investments:
        held = inv.held_units()
        cost = ledger.to_money(inv.amount_invested * held / inv.units)
        nav = navs.get(inv.product_id)
        stale = nav is None
        current_value = ledger.to_money(held * (inv.purchase_nav if stale else nav))
        gain = current_value - cost
        holdings.append(
            {
                "id": str(inv.id),
                "product": inv.product.name,
                "amount_invested": cost,
                "units": held,
                "redeemed_units": inv.redeemed_units,
                "purchase_nav": inv.purchase_nav,
                "current_nav": inv.purchase_nav if stale else nav,
                "current_value": current_value,
                "gain": gain,
                "gain_percentage": ledger.to_money(gain / cost * 100)
                if cost
                else Decimal("0.00"),
                "nav_stale": stale,
                "rule_id": inv.rule_id,
                "created_at": inv.created_at,
            }
        )
        total_invested += cost
        total_value += current_value

    total_gain = total_value - total_invested
    return {
        "total_invested": total_invested,
        "current_value": total_value,
        "total_gain": total_gain,
        "gain_percentage": ledger.to_money(total_gain / total_invested * 100)
        if total_invested
        else Decimal("0.00"),
        "holdings": holdings,
    }
