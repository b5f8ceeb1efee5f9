from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

import requests
from celery import shared_task
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


def _money(value) -> str:
    return f"₹{Decimal(str(value)):,.2f}"


def render_message(kind: str, payload: dict) -> Optional[str]:
    """Builds the push text for a notification kind. Unknown kinds are not pushed."""
    if kind == "kyc_level_up":
        level = payload.get("kyc_level")
        if level == 2:
            return "Your KYC is complete. Investments are now unlocked."
        return f"KYC level {level} reached. Higher payment limits are now available."

    elif kind == "kyc_approved":
        return "Your identity verification has been approved."

    elif kind == "kyc_rejected":
        reason = payload.get("reason") or "No reason given"
        return f"Your KYC was rejected: {reason}. Please verify again."

    elif kind == "savings_auto_saved":
        return (
            f"{_money(payload.get('auto_save_amount', 0))} auto-saved from your "
            f"payment of {_money(payload.get('payment_amount', 0))}."
        )

    elif kind == "deposit_received":
        return f"{_money(payload.get('amount', 0))} added to your savings wallet."

    elif kind == "withdrawal_initiated":
        return (
            f"Withdrawal of {_money(payload.get('amount', 0))} to account "
            f"{payload.get('account', '')} initiated."
        )

    elif kind == "investment_purchased":
        return (
            f"Invested {_money(payload.get('amount', 0))} in {payload.get('product')} "
            f"({payload.get('units')} units at NAV {payload.get('nav')})."
        )

    elif kind == "auto_invest_executed":
        return (
            f"Auto-invest rule executed: {_money(payload.get('amount', 0))} invested "
            f"in {payload.get('product')}."
        )

    elif kind == "investment_redeemed":
        return (
            f"Redeemed {payload.get('units')} units of {payload.get('product')}; "
            f"{_money(payload.get('amount', 0))} credited to your savings wallet."
        )

    return None


@shared_task(queue="notifications")
def deliver_notification(notification_id: str) -> bool:
    """
    Pushes one Notification through the configured gateway.
    Returns True when the notification is marked sent.
    """
    from saveinvest.apps.users.models import Notification, NotificationPreference

    try:
        notification = Notification.objects.select_related("user").get(
            pk=notification_id
        )
    except Notification.DoesNotExist:
        logger.warning(f"Notification {notification_id} vanished before delivery")
        return False

    if notification.sent:
        return True

    pref, _ = NotificationPreference.objects.get_or_create(user=notification.user)
    if not pref.allows(notification.kind):
        logger.info(
            f"Notification {notification.kind} muted by preferences for user {notification.user_id}"
        )
        return False

    text = render_message(notification.kind, notification.payload)
    if not text:
        return False

    gateway = getattr(settings, "PUSH_GATEWAY_URL", "")
    if gateway:
        try:
            r = requests.post(
                gateway,
                json={
                    "user_id": notification.user_id,
                    "mobile": notification.user.mobile,
                    "kind": notification.kind,
                    "text": text,
                },
                timeout=getattr(settings, "PUSH_GATEWAY_TIMEOUT", 5),
            )
            if not r.ok:
                logger.warning(
                    f"Push gateway rejected notification {notification_id}: {r.status_code} {r.text}"
                )
                return False
        except requests.RequestException as e:
            logger.warning(f"Push gateway unreachable for {notification_id}: {e}")
            return False
    else:
        logger.debug(f"No push gateway configured; {notification.kind} recorded only")

    notification.sent = True
    notification.sent_at = timezone.now()
    notification.save(update_fields=["sent", "sent_at"])
    return True
