from datetime import datetime
from decimal import Decimal

import pytest
from django.db import transaction
from django.utils import timezone

from saveinvest.apps.investments.models import AutoInvestRule, Investment
from saveinvest.apps.investments.services import engine, purchase, rules, sizing
from saveinvest.apps.savings.models import SavingsWallet
from saveinvest.apps.savings.services import autosave
from saveinvest.errors import NotFoundError, PrerequisiteError, ValidationError


def _balance(user):
    return SavingsWallet.objects.get(user=user).balance


def _threshold_rule(user, product, trigger="500", **sizing_fields):
    return rules.create_rule(user, product.id, "THRESHOLD", trigger, **sizing_fields)


class TestSizing:
    def test_exactly_one_sizing(self):
        with pytest.raises(ValidationError):
            sizing.sizing_from_payload(percentage=10, amount=500)
        with pytest.raises(ValidationError):
            sizing.sizing_from_payload()

    @pytest.mark.parametrize("pct", [0, "100.5", -1])
    def test_percentage_range(self, pct):
        with pytest.raises(ValidationError):
            sizing.sizing_from_payload(percentage=pct)

    def test_fixed_minimum(self):
        with pytest.raises(ValidationError):
            sizing.sizing_from_payload(amount="99.99")
        assert sizing.sizing_from_payload(amount=100) == sizing.Fixed(Decimal("100.00"))

    def test_percentage_amount_rounds_half_up(self):
        assert sizing.Percentage(Decimal("33")).amount_for(Decimal("100.05")) == Decimal("33.02")


class TestRuleManagement:
    def test_rules_get_increasing_sequence(self, investor, product):
        a = _threshold_rule(investor, product, investment_percentage=40)
        b = _threshold_rule(investor, product, investment_amount=200)
        assert (a.sequence, b.sequence) == (1, 2)
        assert b.sizing == sizing.Fixed(Decimal("200.00"))

    def test_threshold_needs_trigger_value(self, investor, product):
        with pytest.raises(ValidationError):
            rules.create_rule(investor, product.id, "THRESHOLD", None, investment_percentage=10)

    def test_unknown_product(self, investor):
        with pytest.raises(NotFoundError):
            rules.create_rule(investor, 9999, "SCHEDULED", investment_amount=500)

    def test_toggle_and_pause(self, investor, product):
        rule = _threshold_rule(investor, product, investment_percentage=40)
        assert rules.toggle_rule(investor, rule.id).enabled is False
        assert rules.toggle_rule(investor, rule.id).enabled is True
        assert rules.pause_rule(investor, rule.id).is_runnable is False
        assert rules.resume_rule(investor, rule.id).is_runnable is True

    def test_rules_are_scoped_to_owner(self, investor, make_user, product):
        rule = _threshold_rule(investor, product, investment_percentage=40)
        with pytest.raises(NotFoundError):
            rules.toggle_rule(make_user(), rule.id)


class TestEvaluation:
    def test_threshold_rule_invests_percentage(self, investor, product, fund_wallet, nav_feed):
        fund_wallet(investor, "1000")
        rule = _threshold_rule(investor, product, investment_percentage=40)

        report = engine.evaluate_user(investor, nav_feed=nav_feed)

        [outcome] = report.outcomes
        assert outcome.status == engine.EXECUTED
        assert outcome.amount == Decimal("400.00")
        assert _balance(investor) == Decimal("600.00")

        investment = Investment.objects.get(user=investor)
        assert investment.rule_id == rule.id
        assert investment.units == Decimal("16.000000")
        assert investment.purchase_nav == Decimal("25.0000")
        assert investment.transaction.type == "INVESTMENT"

    def test_later_rule_sees_reduced_balance(self, investor, product, fund_wallet, nav_feed):
        fund_wallet(investor, "600")
        first = _threshold_rule(investor, product, investment_percentage=40)
        second = _threshold_rule(investor, product, investment_percentage=40)

        report = engine.evaluate_user(investor, nav_feed=nav_feed)

        by_rule = {o.rule_id: o for o in report.outcomes}
        assert by_rule[first.id].status == engine.EXECUTED
        assert by_rule[first.id].amount == Decimal("240.00")
        assert by_rule[second.id].status == engine.SKIPPED
        assert by_rule[second.id].reason == engine.BELOW_THRESHOLD
        assert _balance(investor) == Decimal("360.00")

    def test_fixed_amount_above_balance_is_skipped(self, investor, product, fund_wallet, nav_feed):
        fund_wallet(investor, "500")
        _threshold_rule(investor, product, trigger="100", investment_amount=800)

        [outcome] = engine.evaluate_user(investor, nav_feed=nav_feed).outcomes

        assert outcome.reason == engine.INSUFFICIENT_FUNDS
        assert _balance(investor) == Decimal("500.00")

    def test_missing_nav_leaves_wallet_untouched(
        self, investor, unpriced_product, fund_wallet, nav_feed
    ):
        fund_wallet(investor, "1000")
        _threshold_rule(investor, unpriced_product, investment_percentage=40)

        [outcome] = engine.evaluate_user(investor, nav_feed=nav_feed).outcomes

        assert outcome.status == engine.SKIPPED
        assert outcome.reason == engine.NAV_UNAVAILABLE
        assert _balance(investor) == Decimal("1000.00")
        assert not Investment.objects.filter(user=investor).exists()

    def test_disabled_rule_is_not_evaluated(self, investor, product, fund_wallet, nav_feed):
        fund_wallet(investor, "1000")
        rule = _threshold_rule(investor, product, investment_percentage=40)
        rules.toggle_rule(investor, rule.id)

        report = engine.evaluate_user(investor, nav_feed=nav_feed)

        assert report.outcomes == []
        assert _balance(investor) == Decimal("1000.00")

    def test_inactive_product_is_skipped(self, investor, product, fund_wallet, nav_feed):
        fund_wallet(investor, "1000")
        _threshold_rule(investor, product, investment_percentage=40)
        product.is_active = False
        product.save()

        [outcome] = engine.evaluate_user(investor, nav_feed=nav_feed).outcomes
        assert outcome.reason == engine.PRODUCT_INACTIVE

    def test_below_product_minimum_is_skipped(self, investor, product, fund_wallet, nav_feed):
        fund_wallet(investor, "150")
        _threshold_rule(investor, product, trigger="100", investment_percentage=10)

        [outcome] = engine.evaluate_user(investor, nav_feed=nav_feed).outcomes
        assert outcome.reason == engine.BELOW_MINIMUM
        assert outcome.amount == Decimal("15.00")

    def test_user_without_full_kyc_is_not_evaluated(self, user, product, fund_wallet, nav_feed):
        fund_wallet(user, "1000")
        report = engine.evaluate_user(user, nav_feed=nav_feed)
        assert report.reason == engine.KYC_LEVEL_INSUFFICIENT
        assert report.outcomes == []

    def test_scheduled_rule_runs_once_per_month(self, investor, product, fund_wallet, nav_feed):
        fund_wallet(investor, "2000")
        rules.create_rule(investor, product.id, "SCHEDULED", investment_amount=500)
        tz = timezone.get_current_timezone()
        first_run = timezone.make_aware(datetime(2026, 3, 1, 0, 0), tz)

        report = engine.evaluate_user(
            investor, trigger_types=(rules.SCHEDULED,), nav_feed=nav_feed, now=first_run
        )
        assert report.outcomes[0].status == engine.EXECUTED

        retry = engine.evaluate_user(
            investor,
            trigger_types=(rules.SCHEDULED,),
            nav_feed=nav_feed,
            now=timezone.make_aware(datetime(2026, 3, 1, 6, 0), tz),
        )
        assert retry.outcomes[0].reason == engine.ALREADY_EXECUTED_THIS_PERIOD

        next_month = engine.evaluate_user(
            investor,
            trigger_types=(rules.SCHEDULED,),
            nav_feed=nav_feed,
            now=timezone.make_aware(datetime(2026, 4, 1, 0, 0), tz),
        )
        assert next_month.outcomes[0].status == engine.EXECUTED
        assert _balance(investor) == Decimal("1000.00")

    def test_threshold_rules_run_after_auto_save(self, investor, product):
        rules.create_rule(investor, product.id, "THRESHOLD", "100", investment_amount=100)

        result = autosave.record_payment(investor, Decimal("1000"))

        assert result["auto_save_amount"] == Decimal("100.00")
        assert _balance(investor) == Decimal("0.00")
        assert Investment.objects.filter(user=investor).count() == 1


class TestDeterminism:
    def _setup(self, user, product, unpriced_product, fund_wallet):
        fund_wallet(user, "1000")
        _threshold_rule(user, product, investment_percentage=40)
        _threshold_rule(user, product, investment_amount=300)
        _threshold_rule(user, unpriced_product, trigger="100", investment_amount=200)
        _threshold_rule(user, product, investment_percentage=10)

    def _trace(self, report):
        return [(o.status, o.amount, o.reason) for o in report.outcomes], report.remaining_balance

    def test_identical_state_gives_identical_outcomes(
        self, make_user, full_kyc, product, unpriced_product, fund_wallet, nav_feed
    ):
        first = full_kyc(make_user(name="Farah", email="farah@example.com"))
        second = full_kyc(make_user(name="Gopal", email="gopal@example.com"))
        for u in (first, second):
            self._setup(u, product, unpriced_product, fund_wallet)
        now = timezone.now()

        traces = [
            self._trace(engine.evaluate_user(u, nav_feed=nav_feed, now=now))
            for u in (first, second)
        ]

        assert traces[0] == traces[1]
        assert traces[0] == (
            [
                ("EXECUTED", Decimal("400.00"), None),
                ("EXECUTED", Decimal("300.00"), None),
                ("SKIPPED", Decimal("200.00"), engine.NAV_UNAVAILABLE),
                ("SKIPPED", None, engine.BELOW_THRESHOLD),
            ],
            Decimal("300.00"),
        )

    def test_rerun_on_restored_state_repeats_itself(
        self, investor, product, unpriced_product, fund_wallet, nav_feed
    ):
        self._setup(investor, product, unpriced_product, fund_wallet)
        now = timezone.now()
        traces = []
        for _ in range(2):
            with transaction.atomic():
                report = engine.evaluate_user(investor, nav_feed=nav_feed, now=now)
                traces.append(self._trace(report))
                transaction.set_rollback(True)

        assert traces[0] == traces[1]
        assert _balance(investor) == Decimal("1000.00")


class TestBatch:
    def test_batch_isolates_failing_users(
        self, make_user, full_kyc, product, fund_wallet, nav_feed, monkeypatch
    ):
        healthy = full_kyc(make_user(name="A", email="a@example.com"))
        broken = full_kyc(make_user(name="B", email="b@example.com"))
        for u in (healthy, broken):
            fund_wallet(u, "1000")
            rules.create_rule(u, product.id, "SCHEDULED", investment_amount=300)

        real_evaluate = engine.evaluate_user

        def flaky(user, *args, **kwargs):
            if user.pk == broken.pk:
                raise RuntimeError("database went away")
            return real_evaluate(user, *args, **kwargs)

        monkeypatch.setattr(engine, "evaluate_user", flaky)

        summary = engine.evaluate_all(nav_feed=nav_feed)

        assert summary.users == 2
        assert summary.succeeded == 1
        assert summary.failed_user_ids == [broken.pk]
        assert summary.total_invested == Decimal("300.00")
        assert _balance(healthy) == Decimal("700.00")
        assert _balance(broken) == Decimal("1000.00")

    def test_batch_skips_users_below_level2(self, user, product, fund_wallet, nav_feed):
        fund_wallet(user, "1000")
        AutoInvestRule.objects.create(
            user=user,
            product=product,
            trigger_type="SCHEDULED",
            sizing_kind="FIXED",
            sizing_value=Decimal("300"),
            sequence=1,
        )
        summary = engine.evaluate_all(nav_feed=nav_feed)
        assert summary.users == 0


class TestManualPurchase:
    def test_purchase_requires_full_kyc(self, user, product, fund_wallet):
        fund_wallet(user, "1000")
        with pytest.raises(PrerequisiteError):
            purchase.purchase(user, product.id, "500")

    def test_purchase_and_portfolio(self, investor, product, fund_wallet, nav_feed):
        fund_wallet(investor, "1000")
        investment = purchase.purchase(investor, product.id, "250", nav_feed=nav_feed)
        assert investment.units == Decimal("10.000000")

        book = purchase.portfolio(investor, nav_feed=nav_feed)
        assert book["total_invested"] == Decimal("250.00")
        assert book["current_value"] == Decimal("250.00")
        assert book["holdings"][0]["nav_stale"] is False


def test_compute_units_truncates():
    assert purchase.compute_units(Decimal("100"), Decimal("3")) == Decimal("33.333333")
