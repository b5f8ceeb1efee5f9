import json
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from saveinvest import celery_app
from saveinvest.apps.investments import tasks
from saveinvest.apps.investments.models import AutoInvestRule, Investment
from saveinvest.apps.investments.services import rules
from saveinvest.apps.investments.tasks import (
    evaluate_user_rules_task,
    refresh_nav_prices,
    run_scheduled_auto_invest,
)
from saveinvest.apps.savings.models import SavingsWallet


def test_scheduled_task_queues_one_task_per_user(make_user, full_kyc, product, fund_wallet):
    investors = [
        full_kyc(make_user(name=name, email=f"{name.lower()}@example.com"))
        for name in ("Anil", "Bela", "Chitra")
    ]
    for investor in investors:
        fund_wallet(investor, "1000")
        rules.create_rule(investor, product.id, "SCHEDULED", investment_amount=200)

    result = run_scheduled_auto_invest.delay().get()

    assert result["queued"] == 3
    assert result["user_ids"] == sorted(u.id for u in investors)
    for investor in investors:
        assert Investment.objects.filter(user=investor).count() == 1
        assert SavingsWallet.objects.get(user=investor).balance == Decimal("800.00")


def test_scheduled_task_failure_stays_with_its_user(
    make_user, full_kyc, product, fund_wallet, monkeypatch
):
    healthy = full_kyc(make_user(name="Dev", email="dev@example.com"))
    broken = full_kyc(make_user(name="Esha", email="esha@example.com"))
    for investor in (healthy, broken):
        fund_wallet(investor, "1000")
        rules.create_rule(investor, product.id, "SCHEDULED", investment_amount=300)

    real_evaluate = tasks.evaluate_user

    def flaky(user, *args, **kwargs):
        if user.pk == broken.pk:
            raise RuntimeError("database went away")
        return real_evaluate(user, *args, **kwargs)

    monkeypatch.setattr(tasks, "evaluate_user", flaky)
    # Failed tasks report through their result instead of raising into the caller
    monkeypatch.setattr(celery_app.conf, "task_eager_propagates", False)

    result = run_scheduled_auto_invest.delay().get()

    assert result["queued"] == 2
    assert Investment.objects.filter(user=healthy).count() == 1
    assert not Investment.objects.filter(user=broken).exists()
    assert SavingsWallet.objects.get(user=broken).balance == Decimal("1000.00")


def test_scheduled_task_skips_users_without_full_kyc(user, product, fund_wallet):
    fund_wallet(user, "1000")
    AutoInvestRule.objects.create(
        user=user,
        product=product,
        trigger_type="SCHEDULED",
        sizing_kind="FIXED",
        sizing_value=Decimal("300"),
        sequence=1,
    )
    assert run_scheduled_auto_invest.delay().get()["queued"] == 0


def test_user_task_reports_missing_user(db):
    result = evaluate_user_rules_task(424242)
    assert result["reason"] == "USER_NOT_FOUND"


def test_user_task_serializes_money(investor, product, fund_wallet):
    fund_wallet(investor, "1000")
    rules.create_rule(investor, product.id, "THRESHOLD", "500", investment_percentage=10)

    result = evaluate_user_rules_task(investor.id, "THRESHOLD")

    assert result["total_invested"] == "100.00"
    assert result["remaining_balance"] == "900.00"
    assert Investment.objects.filter(user=investor).count() == 1


def test_nav_refresh_without_feed_is_noop(db):
    assert refresh_nav_prices() == 0


def test_management_command(investor, product, fund_wallet):
    fund_wallet(investor, "1000")
    rules.create_rule(investor, product.id, "SCHEDULED", investment_amount=300)
    out = StringIO()

    call_command("run_auto_invest", stdout=out)

    body = out.getvalue()
    summary = json.loads(body[: body.rindex("}") + 1])
    assert summary["rules_executed"] == 1
    assert Decimal(summary["total_invested"]) == Decimal("300.00")


def test_management_command_rejects_bad_trigger(db):
    with pytest.raises(CommandError):
        call_command("run_auto_invest", "--trigger", "hourly")
