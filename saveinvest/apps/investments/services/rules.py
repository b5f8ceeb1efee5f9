"""Auto-invest rule management. Rules are paused or disabled, never deleted."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Max

from saveinvest.apps.investments.models import AutoInvestRule, InvestmentProduct
from saveinvest.apps.investments.services import sizing as sizing_mod
from saveinvest.apps.users.models import AppUser
from saveinvest.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

THRESHOLD = "THRESHOLD"
SCHEDULED = "SCHEDULED"
TRIGGER_TYPES = (THRESHOLD, SCHEDULED)


def _active_product(product_id: int) -> InvestmentProduct:
    product = InvestmentProduct.objects.filter(pk=product_id).first()
    if product is None:
        raise NotFoundError("Investment product not found")
    if not product.is_active:
        raise ValidationError("Investment product is not available")
    return product


def _validated_trigger(trigger_type: str, trigger_value) -> tuple[str, Optional[Decimal]]:
    trigger_type = (trigger_type or "").upper()
    if trigger_type not in TRIGGER_TYPES:
        raise ValidationError("Trigger type must be THRESHOLD or SCHEDULED")
    if trigger_type == SCHEDULED:
        # Scheduled rules run on the 1st of every month regardless of balance
        return trigger_type, None
    if trigger_value is None:
        raise ValidationError("Threshold rules need a trigger value")
    value = Decimal(str(trigger_value))
    if value < settings.AUTO_INVEST_MIN_THRESHOLD:
        raise ValidationError(
            f"Trigger value must be at least ₹{settings.AUTO_INVEST_MIN_THRESHOLD}"
        )
    return trigger_type, value


def get_rule(user: AppUser, rule_id: int) -> AutoInvestRule:
    try:
        return AutoInvestRule.objects.select_related("product").get(pk=rule_id, user=user)
    except AutoInvestRule.DoesNotExist:
        raise NotFoundError("Auto-invest rule not found")


def create_rule(
    user: AppUser,
    product_id: int,
    trigger_type: str,
    trigger_value=None,
    investment_percentage=None,
    investment_amount=None,
) -> AutoInvestRule:
    trigger_type, trigger_value = _validated_trigger(trigger_type, trigger_value)
    sizing = sizing_mod.sizing_from_payload(investment_percentage, investment_amount)
    product = _active_product(product_id)

    with transaction.atomic():
        AppUser.objects.select_for_update().get(pk=user.pk)
        last = AutoInvestRule.objects.filter(user=user).aggregate(m=Max("sequence"))["m"]
        rule = AutoInvestRule.objects.create(
            user=user,
            product=product,
            trigger_type=trigger_type,
            trigger_value=trigger_value,
            sizing_kind=sizing.kind,
            sizing_value=sizing.value,
            sequence=(last or 0) + 1,
        )
    logger.info(f"Auto-invest rule {rule.id} created for user {user.id}")
    return rule


def update_rule(user: AppUser, rule_id: int, **fields) -> AutoInvestRule:
    rule = get_rule(user, rule_id)

    if "trigger_type" in fields or "trigger_value" in fields:
        rule.trigger_type, rule.trigger_value = _validated_trigger(
            fields.get("trigger_type", rule.trigger_type),
            fields.get("trigger_value", rule.trigger_value),
        )

    pct = fields.get("investment_percentage")
    amount = fields.get("investment_amount")
    if pct is not None or amount is not None:
        sizing = sizing_mod.sizing_from_payload(pct, amount)
        rule.sizing_kind, rule.sizing_value = sizing.kind, sizing.value

    if fields.get("product_id") is not None:
        rule.product = _active_product(fields["product_id"])

    rule.save()
    return rule


def set_enabled(user: AppUser, rule_id: int, enabled: bool) -> AutoInvestRule:
    rule = get_rule(user, rule_id)
    rule.enabled = bool(enabled)
    rule.save(update_fields=["enabled", "updated_at"])
    logger.info(f"Auto-invest rule {rule.id} {'enabled' if rule.enabled else 'disabled'}")
    return rule


def toggle_rule(user: AppUser, rule_id: int) -> AutoInvestRule:
    rule = get_rule(user, rule_id)
    return set_enabled(user, rule_id, not rule.enabled)


def pause_rule(user: AppUser, rule_id: int) -> AutoInvestRule:
    rule = get_rule(user, rule_id)
    rule.status = "PAUSED"
    rule.save(update_fields=["status", "updated_at"])
    return rule


def resume_rule(user: AppUser, rule_id: int) -> AutoInvestRule:
    rule = get_rule(user, rule_id)
    rule.status = "ACTIVE"
    rule.save(update_fields=["status", "updated_at"])
    return rule


def list_rules(user: AppUser) -> List[AutoInvestRule]:
    return list(
        AutoInvestRule.objects.filter(user=user).select_related("product").order_by("sequence", "id")
    )


def rule_as_dict(rule: AutoInvestRule) -> dict:
    sizing = rule.sizing
    return {
        "id": rule.id,
        "product_id": rule.product_id,
        "product_name": rule.product.name,
        "trigger_type": rule.trigger_type,
        "trigger_value": rule.trigger_value,
        **sizing_mod.sizing_as_dict(sizing),
        "sizing": sizing_mod.describe(sizing),
        "enabled": rule.enabled,
        "status": rule.status,
        "sequence": rule.sequence,
        "last_executed_at": rule.last_executed_at,
        "created_at": rule.created_at,
    }
