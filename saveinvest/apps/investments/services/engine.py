"""
Auto-invest rule evaluation.

Rules of one user run in their explicit ``sequence`` order. Each rule is its
own unit of work: the wallet row is locked, the rule is re-read, and the
read-decide-debit sequence commits before the next rule looks at the balance.
A failing rule is reported and the remaining rules still run. In a batch pass a
failing user never stops the others.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from django.db import transaction
from django.utils import timezone

from saveinvest.apps.investments.models import AutoInvestRule
from saveinvest.apps.investments.services.nav import NavFeed
from saveinvest.apps.investments.services.purchase import execute_purchase
from saveinvest.apps.investments.services.rules import SCHEDULED, THRESHOLD, TRIGGER_TYPES
from saveinvest.apps.savings.models import SavingsWallet
from saveinvest.apps.savings.services import ledger
from saveinvest.apps.users.models import AppUser
from saveinvest.errors import InsufficientFundsError, NavUnavailableError

logger = logging.getLogger(__name__)

EXECUTED = "EXECUTED"
SKIPPED = "SKIPPED"
FAILED = "FAILED"

# Skip reasons
RULE_INACTIVE = "RULE_INACTIVE"
ALREADY_EXECUTED_THIS_PERIOD = "ALREADY_EXECUTED_THIS_PERIOD"
BELOW_THRESHOLD = "BELOW_THRESHOLD"
INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
BELOW_MINIMUM = "BELOW_MINIMUM"
PRODUCT_INACTIVE = "PRODUCT_INACTIVE"
NAV_UNAVAILABLE = "NAV_UNAVAILABLE"
KYC_LEVEL_INSUFFICIENT = "KYC_LEVEL_INSUFFICIENT"


@dataclass
class RuleOutcome:
    rule_id: int
    status: str
    amount: Optional[Decimal] = None
    reason: Optional[str] = None
    investment_id: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "status": self.status,
            "amount": self.amount,
            "reason": self.reason,
            "investment_id": self.investment_id,
        }


@dataclass
class EvaluationReport:
    user_id: int
    outcomes: List[RuleOutcome] = field(default_factory=list)
    total_invested: Decimal = Decimal("0.00")
    remaining_balance: Decimal = Decimal("0.00")
    reason: Optional[str] = None

    @property
    def executed(self) -> List[RuleOutcome]:
        return [o for o in self.outcomes if o.status == EXECUTED]

    def as_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "results": [o.as_dict() for o in self.outcomes],
            "total_invested": self.total_invested,
            "remaining_balance": self.remaining_balance,
            "reason": self.reason,
        }


@dataclass
class BatchSummary:
    users: int = 0
    succeeded: int = 0
    failed: int = 0
    rules_executed: int = 0
    total_invested: Decimal = Decimal("0.00")
    failed_user_ids: List[int] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "users": self.users,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "rules_executed": self.rules_executed,
            "total_invested": str(self.total_invested),
            "failed_user_ids": self.failed_user_ids,
        }


def _same_period(last, now) -> bool:
    if last is None:
        return False
    last, now = timezone.localtime(last), timezone.localtime(now)
    return (last.year, last.month) == (now.year, now.month)


def _skip(rule_id: int, reason: str, amount: Optional[Decimal] = None) -> RuleOutcome:
    logger.info(f"Auto-invest rule {rule_id} skipped: {reason}")
    return RuleOutcome(rule_id=rule_id, status=SKIPPED, amount=amount, reason=reason)


def _evaluate_rule(user: AppUser, rule_id: int, nav_feed: NavFeed, now) -> RuleOutcome:
    amount = None
    try:
        with transaction.atomic():
            wallet = ledger.lock_wallet(user)
            # Re-read under the lock so a toggle made mid-pass is honoured
            rule = AutoInvestRule.objects.select_related("product").get(pk=rule_id)
            if not rule.is_runnable:
                return _skip(rule_id, RULE_INACTIVE)
            if rule.trigger_type == SCHEDULED and _same_period(rule.last_executed_at, now):
                return _skip(rule_id, ALREADY_EXECUTED_THIS_PERIOD)

            balance = wallet.balance
            if rule.trigger_type == THRESHOLD and balance < rule.trigger_value:
                return _skip(rule_id, BELOW_THRESHOLD)

            amount = rule.sizing.amount_for(balance)
            if amount <= 0 or amount > balance:
                return _skip(rule_id, INSUFFICIENT_FUNDS, amount)
            if not rule.product.is_active:
                return _skip(rule_id, PRODUCT_INACTIVE, amount)
            if amount < rule.product.min_investment:
                return _skip(rule_id, BELOW_MINIMUM, amount)

            investment = execute_purchase(
                user, rule.product, amount, nav_feed, wallet=wallet, rule=rule
            )
            rule.last_executed_at = now
            rule.save(update_fields=["last_executed_at", "updated_at"])
    except NavUnavailableError as e:
        logger.warning(f"Auto-invest rule {rule_id} skipped, retry next cycle: {e.message}")
        return RuleOutcome(rule_id=rule_id, status=SKIPPED, amount=amount, reason=NAV_UNAVAILABLE)
    except InsufficientFundsError:
        return _skip(rule_id, INSUFFICIENT_FUNDS, amount)
    except Exception as e:
        logger.exception(f"Auto-invest rule {rule_id} failed for user {user.id}")
        return RuleOutcome(rule_id=rule_id, status=FAILED, amount=amount, reason=str(e))

    logger.info(
        f"Auto-invest rule {rule_id} invested {investment.amount_invested} "
        f"for user {user.id} ({investment.units} units)"
    )
    return RuleOutcome(
        rule_id=rule_id,
        status=EXECUTED,
        amount=investment.amount_invested,
        investment_id=str(investment.id),
    )


def evaluate_user(
    user: AppUser,
    trigger_types: Sequence[str] = TRIGGER_TYPES,
    rule_ids: Optional[Iterable[int]] = None,
    nav_feed: Optional[NavFeed] = None,
    now=None,
) -> EvaluationReport:
    """Evaluates the user's enabled, active rules of ``trigger_types`` in sequence order."""
    nav_feed = nav_feed or NavFeed()
    now = now or timezone.now()
    report = EvaluationReport(user_id=user.id)

    user.refresh_from_db(fields=["kyc_level"])
    if user.kyc_level < 2:
        report.reason = KYC_LEVEL_INSUFFICIENT
    else:
        rules = AutoInvestRule.objects.filter(
            user=user, trigger_type__in=list(trigger_types), enabled=True, status="ACTIVE"
        )
        if rule_ids is not None:
            rules = rules.filter(pk__in=list(rule_ids))
        for rule_id in rules.order_by("sequence", "id").values_list("id", flat=True):
            report.outcomes.append(_evaluate_rule(user, rule_id, nav_feed, now))

    report.total_invested = sum((o.amount for o in report.executed), Decimal("0.00"))
    report.remaining_balance = (
        SavingsWallet.objects.filter(user=user).values_list("balance", flat=True).first()
        or Decimal("0.00")
    )
    return report


def evaluate_after_credit(user: AppUser) -> Optional[EvaluationReport]:
    """THRESHOLD pass run after a wallet credit commits."""
    has_rules = AutoInvestRule.objects.filter(
        user=user, trigger_type=THRESHOLD, enabled=True, status="ACTIVE"
    ).exists()
    if not has_rules:
        return None
    return evaluate_user(user, trigger_types=(THRESHOLD,))


def eligible_user_ids(trigger_types: Sequence[str] = (SCHEDULED,)) -> List[int]:
    """Active level-2 users holding at least one runnable rule of ``trigger_types``."""
    return list(
        AutoInvestRule.objects.filter(
            trigger_type__in=list(trigger_types),
            enabled=True,
            status="ACTIVE",
            user__is_active=True,
            user__kyc_level__gte=2,
        )
        .order_by("user_id")
        .values_list("user_id", flat=True)
        .distinct()
    )


def evaluate_all(
    trigger_types: Sequence[str] = (SCHEDULED,),
    nav_feed: Optional[NavFeed] = None,
    now=None,
) -> BatchSummary:
    """
    In-process batch pass over every eligible user.

    Users are evaluated one after another and a failing user is recorded
    without stopping the others. The scheduled Celery pass fans out one task
    per user instead (see ``tasks.run_scheduled_auto_invest``).
    """
    nav_feed = nav_feed or NavFeed()
    now = now or timezone.now()

    user_ids = eligible_user_ids(trigger_types)
    summary = BatchSummary(users=len(user_ids))

    for user_id in user_ids:
        try:
            user = AppUser.objects.get(pk=user_id)
            report = evaluate_user(user, trigger_types, nav_feed=nav_feed, now=now)
        except Exception as e:
            logger.error(f"Auto-invest batch failed for user {user_id}: {e!r}")
            summary.failed += 1
            summary.failed_user_ids.append(user_id)
            continue
        summary.succeeded += 1
        summary.rules_executed += len(report.executed)
        summary.total_invested += report.total_invested

    logger.info(
        f"Auto-invest batch done: {summary.succeeded}/{summary.users} users, "
        f"{summary.rules_executed} rules executed, {summary.total_invested} invested"
    )
    return summary
