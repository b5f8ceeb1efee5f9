from __future__ import annotations

import logging

from celery import shared_task

from saveinvest.apps.investments.services.engine import eligible_user_ids, evaluate_user
from saveinvest.apps.investments.services.nav import NavFeed
from saveinvest.apps.investments.services.rules import SCHEDULED, THRESHOLD, TRIGGER_TYPES
from saveinvest.apps.users.models import AppUser
from saveinvest.errors import UpstreamProviderError

logger = logging.getLogger(__name__)

TRIGGER_CHOICES = {
    SCHEDULED: (SCHEDULED,),
    THRESHOLD: (THRESHOLD,),
    "ALL": TRIGGER_TYPES,
}


@shared_task(queue="auto_invest")
def evaluate_user_rules_task(user_id: int, trigger: str = "ALL") -> dict:
    """Evaluates one user's rules; returns the evaluation report."""
    try:
        user = AppUser.objects.get(pk=user_id)
    except AppUser.DoesNotExist:
        logger.warning(f"evaluate_user_rules_task: user {user_id} not found")
        return {"user_id": user_id, "results": [], "reason": "USER_NOT_FOUND"}
    report = evaluate_user(user, TRIGGER_CHOICES[trigger])
    return report.as_dict() | {
        "total_invested": str(report.total_invested),
        "remaining_balance": str(report.remaining_balance),
    }


@shared_task(queue="auto_invest")
def run_scheduled_auto_invest(trigger: str = SCHEDULED) -> dict:
    """Monthly pass: queues one evaluation task per eligible user."""
    user_ids = eligible_user_ids(TRIGGER_CHOICES[trigger])
    for user_id in user_ids:
        evaluate_user_rules_task.delay(user_id, trigger)
    logger.info(f"Auto-invest pass queued {len(user_ids)} user(s) for {trigger} rules")
    return {"trigger": trigger, "queued": len(user_ids), "user_ids": user_ids}


@shared_task(queue="auto_invest")
def refresh_nav_prices() -> int:
    feed = NavFeed()
    if not feed.url:
        logger.info("NAV feed URL not configured; skipping refresh")
        return 0
    try:
        return feed.refresh_from_feed()
    except UpstreamProviderError as e:
        # Stale NAVs are tolerated; rules skip until the next refresh succeeds
        logger.warning(f"NAV refresh failed: {e.message}")
        return 0
