"""
Read-only aggregations for the app's insight screens.

Rows are pulled with ``.values()`` and folded with pandas. Money enters the
frames as integer paise and units as integer micro-units, so sums stay exact;
both are turned back into decimal strings on the way out.
"""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

import pandas as pd
from django.utils import timezone

from saveinvest.apps.investments.models import Investment, InvestmentProduct
from saveinvest.apps.investments.services.nav import NavFeed
from saveinvest.apps.savings.models import Transaction
from saveinvest.apps.users.models import AppUser

logger = logging.getLogger(__name__)

MAX_TREND_MONTHS = 24
PAISE = Decimal("100")
MICRO_UNITS = Decimal("1000000")


def _paise(value) -> int:
    return int((Decimal(value) * PAISE).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _money(paise) -> str:
    return str((Decimal(int(paise)) / PAISE).quantize(Decimal("0.01")))


def _month_keys(months: int) -> List[str]:
    current = pd.Period(timezone.localdate(), freq="M")
    return [str(p) for p in pd.period_range(end=current, periods=months, freq="M")]


def savings_trend(user: AppUser, months: int = 6) -> List[Dict[str, Any]]:
    """
    Monthly saved, auto-saved and spent totals for the last ``months`` calendar
    months, oldest first. Months without activity are zero-filled.
    """
    months = max(1, min(int(months), MAX_TREND_MONTHS))
    keys = _month_keys(months)
    start = pd.Period(keys[0], freq="M").start_time.date()

    rows = [
        {
            "month": timezone.localtime(r["created_at"]).strftime("%Y-%m"),
            "type": r["type"],
            "paise": _paise(r["amount"]),
            "auto": bool((r["metadata"] or {}).get("auto_save")),
        }
        for r in Transaction.objects.filter(
            user=user,
            status="SUCCESS",
            type__in=["DEPOSIT", "PAYMENT"],
            created_at__date__gte=start,
        ).values("type", "amount", "metadata", "created_at")
    ]

    frame = pd.DataFrame(0, index=keys, columns=["saved", "auto_saved", "spent", "payments"])
    if rows:
        df = pd.DataFrame(rows)
        deposits = df[df["type"] == "DEPOSIT"]
        payments = df[df["type"] == "PAYMENT"]

        frame["saved"] = deposits.groupby("month")["paise"].sum().reindex(keys, fill_value=0)
        frame["auto_saved"] = (
            deposits[deposits["auto"]].groupby("month")["paise"].sum().reindex(keys, fill_value=0)
        )
        frame["spent"] = payments.groupby("month")["paise"].sum().reindex(keys, fill_value=0)
        frame["payments"] = payments.groupby("month")["paise"].count().reindex(keys, fill_value=0)

    return [
        {
            "month": month,
            "saved": _money(row["saved"]),
            "auto_saved": _money(row["auto_saved"]),
            "spent": _money(row["spent"]),
            "payments": int(row["payments"]),
        }
        for month, row in frame.iterrows()
    ]


def investment_summary(user: AppUser, nav_feed: Optional[NavFeed] = None) -> Dict[str, Any]:
    """
    Units still held per product, valued at the current NAV (purchase NAV when
    none is known). Partly redeemed investments count at a pro-rata cost.
    """
    rows = [
        r
        for r in Investment.objects.filter(user=user, status="ACTIVE")
        .with_redeemed_units()
        .values(
            "product_id",
            "product__name",
            "amount_invested",
            "units",
            "redeemed_units",
            "purchase_nav",
        )
        if r["units"] > r["redeemed_units"]
    ]
    if not rows:
        return {
            "total_invested": "0.00",
            "current_value": "0.00",
            "total_gain": "0.00",
            "products": [],
        }

    nav_feed = nav_feed or NavFeed()
    products = InvestmentProduct.objects.filter(pk__in={r["product_id"] for r in rows})
    navs = nav_feed.current_navs(products)
    stale = {r["product_id"] for r in rows} - set(navs)
    if stale:
        logger.info(f"No current NAV for products {sorted(stale)}; valuing at purchase NAV")

    holdings = []
    for r in rows:
        held = r["units"] - r["redeemed_units"]
        nav = navs.get(r["product_id"], r["purchase_nav"])
        holdings.append(
            {
                "product_id": r["product_id"],
                "product_name": r["product__name"],
                "invested": _paise(r["amount_invested"] * held / r["units"]),
                "micro_units": int(held * MICRO_UNITS),
                "value": _paise(held * nav),
            }
        )

    grouped = (
        pd.DataFrame(holdings)
        .groupby(["product_id", "product_name"])
        .agg(invested=("invested", "sum"), units=("micro_units", "sum"), value=("value", "sum"))
        .reset_index()
        .sort_values("invested", ascending=False)
    )
    total_invested = int(grouped["invested"].sum())
    total_value = int(grouped["value"].sum())

    return {
        "total_invested": _money(total_invested),
        "current_value": _money(total_value),
        "total_gain": _money(total_value - total_invested),
        "products": [
            {
                "product_id": int(r.product_id),
                "product": r.product_name,
                "invested": _money(r.invested),
                "units": str(Decimal(int(r.units)).scaleb(-6)),
                "current_value": _money(r.value),
                "allocation_percentage": round(float(r.invested) * 100 / total_invested, 2)
                if total_invested
                else 0.0,
            }
            for r in grouped.itertuples(index=False)
        ],
    }
