from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from saveinvest.apps.kyc import views as kyc_views
from saveinvest.apps.savings.models import SavingsWallet


@pytest.fixture
def client():
    return APIClient()


@pytest.fixture
def fake_kyc_service(monkeypatch, kyc_service):
    monkeypatch.setattr(kyc_views, "_service", lambda: kyc_service)
    return kyc_service


def test_healthz(client, db):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_onboarding_walkthrough(client, db):
    resp = client.post("/api/users/", {"mobile": "9876543210"}, format="json")
    assert resp.status_code == 201
    user_id = resp.json()["id"]

    status = client.get(f"/api/users/{user_id}/onboarding/status").json()
    assert status["current_step"] == "PROFILE_SETUP"

    client.patch(
        f"/api/users/{user_id}/profile",
        {"name": "Meera", "email": "meera@example.com"},
        format="json",
    )
    client.post(f"/api/users/{user_id}/pin", {"pin": "1234"}, format="json")
    client.post(f"/api/users/{user_id}/biometric", {"enabled": True}, format="json")

    status = client.get(f"/api/users/{user_id}/onboarding/status").json()
    assert status["current_step"] == "DASHBOARD"
    assert status["completion_status"]["pin_setup"] is True


def test_duplicate_mobile_conflicts(client, db):
    client.post("/api/users/", {"mobile": "9876543210"}, format="json")
    resp = client.post("/api/users/", {"mobile": "9876543210"}, format="json")
    assert resp.status_code == 409
    assert resp.json()["error"] == "conflict"


def test_invalid_mobile(client, db):
    resp = client.post("/api/users/", {"mobile": "12345"}, format="json")
    assert resp.status_code == 400


def test_pin_check(client, user):
    url = f"/api/users/{user.id}/pin/check"
    assert client.post(url, {"pin": "1234"}, format="json").json() == {"verified": False}

    client.post(f"/api/users/{user.id}/pin", {"pin": "1234"}, format="json")

    assert client.post(url, {"pin": "1234"}, format="json").json() == {"verified": True}
    assert client.post(url, {"pin": "4321"}, format="json").json() == {"verified": False}


def test_kyc_requirement_for_large_payment(client, user):
    resp = client.get(
        f"/api/users/{user.id}/onboarding/kyc-requirement",
        {"action": "PAYMENT", "amount": "15000"},
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "required": True,
        "required_level": 1,
        "current_level": 0,
        "message": "KYC Level 1 required for payments above ₹10,000",
        "next_steps": ["Verify PAN card"],
    }


def test_blocked_payment_returns_next_steps(client, user):
    resp = client.post(f"/api/users/{user.id}/payments", {"amount": "15000"}, format="json")
    assert resp.status_code == 403
    body = resp.json()
    assert body["error"] == "prerequisite_required"
    assert body["next_steps"] == ["Verify PAN card"]


def test_payment_auto_saves(client, user):
    resp = client.post(f"/api/users/{user.id}/payments", {"amount": "1000.00"}, format="json")
    assert resp.status_code == 201
    assert Decimal(str(resp.json()["auto_save_amount"])) == Decimal("100.00")
    assert SavingsWallet.objects.get(user=user).balance == Decimal("100.00")

    txns = client.get(f"/api/users/{user.id}/transactions", {"type": "deposit"}).json()
    assert len(txns) == 1


def test_pan_conflict_over_http(client, user, make_user):
    other = make_user()
    client.post(f"/api/users/{user.id}/kyc/pan", {"pan_number": "ABCDE1234F"}, format="json")
    resp = client.post(
        f"/api/users/{other.id}/kyc/pan", {"pan_number": "ABCDE1234F"}, format="json"
    )
    assert resp.status_code == 409
    assert client.get(f"/api/users/{other.id}/kyc").json()["pan_verified"] is False


def test_aadhaar_over_http(client, user, fake_kyc_service):
    started = client.post(
        f"/api/users/{user.id}/kyc/aadhaar/initiate",
        {"aadhaar_number": "2345 6789 0123"},
        format="json",
    )
    assert started.status_code == 200
    resp = client.post(
        f"/api/users/{user.id}/kyc/aadhaar/verify",
        {"reference_id": started.json()["reference_id"], "otp": "890123"},
        format="json",
    )
    assert resp.status_code == 200
    assert resp.json()["aadhaar_number"] == "XXXX-XXXX-0123"


def test_liveness_before_aadhaar(client, user):
    resp = client.post(f"/api/users/{user.id}/kyc/liveness", {}, format="json")
    assert resp.status_code == 403
    assert resp.json()["next_steps"][0] == "Verify PAN card"


def test_bank_account_lifecycle(client, user):
    base = f"/api/users/{user.id}/bank-accounts"
    first = client.post(
        base,
        {"account_number": "123456789012", "ifsc_code": "HDFC0001234", "holder_name": "Asha Rao"},
        format="json",
    ).json()
    second = client.post(
        base,
        {"account_number": "998877665544", "ifsc_code": "SBIN0000001", "holder_name": "Asha Rao"},
        format="json",
    ).json()
    assert first["is_primary"] is True
    assert first["account_number"] == "****9012"

    resp = client.delete(f"{base}/{first['id']}")
    assert resp.status_code == 403

    client.post(f"{base}/{second['id']}/primary")
    assert client.delete(f"{base}/{first['id']}").status_code == 204
    assert [a["id"] for a in client.get(base).json()] == [second["id"]]


def test_rule_creation_validates_sizing(client, investor, product):
    resp = client.post(
        f"/api/users/{investor.id}/auto-invest-rules",
        {
            "product_id": product.id,
            "trigger_type": "THRESHOLD",
            "trigger_value": "500",
            "investment_percentage": "40",
            "investment_amount": "500",
        },
        format="json",
    )
    assert resp.status_code == 400


def test_rule_evaluation_over_http(client, investor, product, fund_wallet):
    fund_wallet(investor, "1000")
    rule = client.post(
        f"/api/users/{investor.id}/auto-invest-rules",
        {
            "product_id": product.id,
            "trigger_type": "THRESHOLD",
            "trigger_value": "500",
            "investment_percentage": "40",
        },
        format="json",
    ).json()
    assert rule["kind"] == "PERCENTAGE"

    report = client.post(
        f"/api/users/{investor.id}/auto-invest-rules/evaluate", {}, format="json"
    ).json()
    assert report["results"][0]["status"] == "EXECUTED"
    assert Decimal(str(report["remaining_balance"])) == Decimal("600.00")

    toggled = client.post(f"/api/users/{investor.id}/auto-invest-rules/{rule['id']}/toggle")
    assert toggled.json()["enabled"] is False


def test_evaluate_requires_full_kyc(client, user):
    resp = client.post(f"/api/users/{user.id}/auto-invest-rules/evaluate", {}, format="json")
    assert resp.status_code == 403
    assert resp.json()["message"] == "Full KYC required for investments"


def test_products_list_current_nav(client, product):
    [listed] = client.get("/api/products").json()
    assert listed["current_nav"] == "25.0000"


def test_unknown_user_is_404(client, db):
    assert client.get("/api/users/999/wallet").status_code == 404
