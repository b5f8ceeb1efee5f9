"""Investment sizing: either a percentage of the wallet balance or a fixed amount, never both."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from django.conf import settings

from saveinvest.apps.savings.services.ledger import to_money
from saveinvest.errors import ValidationError

PERCENTAGE = "PERCENTAGE"
FIXED = "FIXED"


@dataclass(frozen=True)
class Percentage:
    value: Decimal
    kind = PERCENTAGE

    def amount_for(self, balance: Decimal) -> Decimal:
        return to_money(Decimal(balance) * self.value / Decimal(100))


@dataclass(frozen=True)
class Fixed:
    amount: Decimal
    kind = FIXED

    @property
    def value(self) -> Decimal:
        return self.amount

    def amount_for(self, balance: Decimal) -> Decimal:
        return self.amount


InvestmentSizing = Union[Percentage, Fixed]


def _decimal(raw, label: str) -> Decimal:
    try:
        return Decimal(str(raw))
    except ArithmeticError:
        raise ValidationError(f"Invalid {label}")


def sizing_from_payload(percentage=None, amount=None) -> InvestmentSizing:
    """Builds a validated sizing from request fields; exactly one must be given."""
    if (percentage is None) == (amount is None):
        raise ValidationError(
            "Specify either investment percentage or investment amount, not both"
        )
    if percentage is not None:
        pct = _decimal(percentage, "investment percentage")
        if not Decimal(1) <= pct <= Decimal(100):
            raise ValidationError("Investment percentage must be between 1 and 100")
        return Percentage(to_money(pct))

    fixed = _decimal(amount, "investment amount")
    minimum = Decimal(settings.AUTO_INVEST_MIN_FIXED_AMOUNT)
    if fixed < minimum:
        raise ValidationError(f"Investment amount must be at least ₹{minimum}")
    return Fixed(to_money(fixed))


def sizing_from_model(rule) -> InvestmentSizing:
    if rule.sizing_kind == PERCENTAGE:
        return Percentage(Decimal(rule.sizing_value))
    if rule.sizing_kind == FIXED:
        return Fixed(Decimal(rule.sizing_value))
    raise ValueError(f"Unknown sizing kind {rule.sizing_kind!r}")


def sizing_as_dict(sizing: InvestmentSizing) -> dict:
    return {
        "kind": sizing.kind,
        "investment_percentage": sizing.value if isinstance(sizing, Percentage) else None,
        "investment_amount": sizing.amount if isinstance(sizing, Fixed) else None,
    }


def describe(sizing: Optional[InvestmentSizing]) -> str:
    if isinstance(sizing, Percentage):
        return f"{sizing.value}% of balance"
    if isinstance(sizing, Fixed):
        return f"₹{sizing.amount}"
    return ""
