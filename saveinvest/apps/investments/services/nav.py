"""Current NAV lookups and the daily NAV feed import."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional

import requests
from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_date

from saveinvest.apps.investments.models import InvestmentProduct, NavHistory
from saveinvest.errors import (
    NavUnavailableError,
    NotFoundError,
    UpstreamProviderError,
    ValidationError,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass
class NavQuote:
    """Normalised NAV for one product on one day."""

    code: str
    nav: Decimal
    date: date


class NavFeed:
    def __init__(self, url: Optional[str] = None, timeout: Optional[int] = None):
        self.url = url if url is not None else settings.NAV_FEED_URL
        self.timeout = timeout or settings.NAV_FEED_TIMEOUT

    def current_nav(self, product: InvestmentProduct) -> Decimal:
        latest = (
            NavHistory.objects.filter(product=product).order_by("-date").values_list("nav", flat=True).first()
        )
        if latest is None or latest <= 0:
            raise NavUnavailableError(f"No current NAV for {product.name}")
        return latest

    def current_navs(self, products: Iterable[InvestmentProduct]) -> Dict[int, Decimal]:
        """NAV per product id; products without a NAV are left out."""
        navs = {}
        for product in products:
            try:
                navs[product.id] = self.current_nav(product)
            except NavUnavailableError:
                continue
        return navs

    def history(
        self,
        product_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        days: int = 30,
    ) -> dict:
        """NAV rows from ``start`` to ``end``, oldest first; the last ``days`` days by default."""
        product = InvestmentProduct.objects.filter(pk=product_id).first()
        if product is None:
            raise NotFoundError("Investment product not found")
        end = end or timezone.localdate()
        start = start or end - timedelta(days=days)
        if start > end:
            raise ValidationError("Start date must not be after end date")

        rows = list(
            NavHistory.objects.filter(product=product, date__gte=start, date__lte=end)
            .order_by("date")
            .values("date", "nav")
        )
        if not rows:
            raise NotFoundError("No NAV history found for the specified period")

        navs = [r["nav"] for r in rows]
        first, current = navs[0], navs[-1]
        change = current - first
        return {
            "product_id": product.id,
            "product": product.name,
            "history": rows,
            "summary": {
                "current": current,
                "highest": max(navs),
                "lowest": min(navs),
                "change": change.quantize(CENT, rounding=ROUND_HALF_UP),
                "change_percentage": (change / first * 100).quantize(
                    CENT, rounding=ROUND_HALF_UP
                ),
            },
        }

    # ---------------------------
    # Feed import
    # ---------------------------

    def _request(self) -> Dict[str, object]:
        if not self.url:
            raise UpstreamProviderError("NAV feed URL is not configured")
        try:
            response = requests.get(self.url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpstreamProviderError(f"NAV feed unreachable: {exc}") from exc
        if response.status_code != 200:
            raise UpstreamProviderError(
                f"NAV feed returned {response.status_code}: {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamProviderError("Invalid JSON received from NAV feed.") from exc

    def _parse(self, data: Dict[str, object]) -> List[NavQuote]:
        quotes = []
        for entry in data.get("data", []):
            if not isinstance(entry, dict):
                continue
            try:
                nav = Decimal(str(entry["nav"]))
                day = parse_date(str(entry.get("date", ""))) or timezone.localdate()
                code = str(entry["code"])
            except (KeyError, InvalidOperation, ValueError):
                continue
            if nav > 0:
                quotes.append(NavQuote(code=code, nav=nav, date=day))
        return quotes

    def refresh_from_feed(self) -> int:
        """Upserts the feed's NAVs for known products. Returns rows written."""
        quotes = self._parse(self._request())
        products = {
            p.feed_code: p for p in InvestmentProduct.objects.filter(feed_code__isnull=False)
        }
        written = 0
        for quote in quotes:
            product = products.get(quote.code)
            if product is None:
                continue
            NavHistory.objects.update_or_create(
                product=product, date=quote.date, defaults={"nav": quote.nav}
            )
            written += 1
        logger.info(f"NAV feed refreshed {written} of {len(quotes)} quotes")
        return written
