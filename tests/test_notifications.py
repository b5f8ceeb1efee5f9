import pytest
import requests
from rest_framework.test import APIClient

from saveinvest.apps.kyc.models import KycDocument
from saveinvest.apps.savings.models import SavingsConfig, SavingsWallet
from saveinvest.apps.users.models import Notification, NotificationPreference
from saveinvest.apps.users.services import inbox, profile
from saveinvest.apps.users.tasks import deliver_notification, render_message
from saveinvest.errors import NotFoundError, ValidationError


def test_new_user_gets_related_rows(user):
    assert KycDocument.objects.filter(user=user).exists()
    assert SavingsWallet.objects.filter(user=user).exists()
    assert SavingsConfig.objects.filter(user=user).exists()
    assert NotificationPreference.objects.filter(user=user).exists()


def test_pin_rules(user):
    with pytest.raises(ValidationError):
        profile.set_pin(user, "12a4")
    profile.set_pin(user, "4321")
    assert profile.verify_pin(user, "4321")
    assert not profile.verify_pin(user, "1111")


def test_render_known_and_unknown_kinds():
    text = render_message("savings_auto_saved", {"auto_save_amount": "100", "payment_amount": "1000"})
    assert text == "₹100.00 auto-saved from your payment of ₹1,000.00."
    assert render_message("something_else", {}) is None


def test_delivery_marks_sent(user):
    n = Notification.objects.create(user=user, kind="kyc_approved", payload={})
    assert deliver_notification(str(n.pk)) is True
    n.refresh_from_db()
    assert n.sent and n.sent_at is not None


def test_muted_category_is_not_sent(user):
    profile.update_preferences(user, kyc_alerts=False)
    n = Notification.objects.create(user=user, kind="kyc_approved", payload={})
    assert deliver_notification(str(n.pk)) is False
    n.refresh_from_db()
    assert n.sent is False


def test_gateway_failure_keeps_notification_pending(user, settings, monkeypatch):
    settings.PUSH_GATEWAY_URL = "https://push.invalid/send"

    def down(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "post", down)
    n = Notification.objects.create(user=user, kind="deposit_received", payload={"amount": "5"})

    assert deliver_notification(str(n.pk)) is False
    n.refresh_from_db()
    assert n.sent is False


class TestInbox:
    def test_list_is_newest_first_with_unread_count(self, user):
        baseline = Notification.objects.filter(user=user).count()
        for kind in ("deposit_received", "kyc_approved", "deposit_received"):
            Notification.objects.create(user=user, kind=kind, payload={})

        page = inbox.list_notifications(user, limit=2)

        assert len(page["data"]) == 2
        assert page["unread_count"] == baseline + 3
        assert page["pagination"]["total"] == baseline + 3
        assert page["data"][0].created_at >= page["data"][1].created_at

    def test_filters_and_page_past_the_end(self, user):
        Notification.objects.create(user=user, kind="deposit_received", payload={})
        Notification.objects.create(user=user, kind="kyc_approved", payload={})

        only_deposits = inbox.list_notifications(user, kind="deposit_received")
        assert [n.kind for n in only_deposits["data"]] == ["deposit_received"]
        assert inbox.list_notifications(user, kind="deposit_received", page=5)["data"] == []

    def test_mark_read_ignores_other_users(self, user, make_user):
        other = make_user()
        mine = Notification.objects.create(user=user, kind="kyc_approved", payload={})
        theirs = Notification.objects.create(user=other, kind="kyc_approved", payload={})

        assert inbox.mark_read(user, [mine.id, theirs.id]) == 1
        theirs.refresh_from_db()
        assert theirs.is_read is False
        assert inbox.list_notifications(user, is_read=True)["pagination"]["total"] == 1

    def test_mark_all_read(self, user):
        Notification.objects.create(user=user, kind="kyc_approved", payload={})
        Notification.objects.create(user=user, kind="deposit_received", payload={})

        assert inbox.mark_all_read(user) >= 2
        assert inbox.list_notifications(user)["unread_count"] == 0
        assert inbox.mark_all_read(user) == 0

    def test_delete_only_own_notification(self, user, make_user):
        theirs = Notification.objects.create(user=make_user(), kind="kyc_approved", payload={})
        with pytest.raises(NotFoundError):
            inbox.delete_notification(user, theirs.id)
        assert Notification.objects.filter(pk=theirs.pk).exists()

    def test_inbox_endpoints(self, user):
        client = APIClient()
        n = Notification.objects.create(user=user, kind="kyc_approved", payload={})
        base = f"/api/users/{user.id}/notifications"

        listed = client.get(base, {"kind": "kyc_approved"}).json()
        assert listed["data"][0]["id"] == str(n.id)
        assert listed["data"][0]["is_read"] is False

        resp = client.post(f"{base}/mark-read", {"notification_ids": [str(n.id)]}, format="json")
        assert resp.json() == {"count": 1}
        assert client.get(base, {"is_read": "true"}).json()["pagination"]["total"] == 1
        assert client.delete(f"{base}/{n.id}").status_code == 204


def test_redemption_message():
    text = render_message(
        "investment_redeemed", {"amount": "594", "product": "Liquid Fund", "units": "20.000000"}
    )
    assert text == "Redeemed 20.000000 units of Liquid Fund; ₹594.00 credited to your savings wallet."
