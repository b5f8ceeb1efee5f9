import pytest

from saveinvest.apps.audit.models import DataAccessLog
from saveinvest.apps.kyc.models import KycDocument
from saveinvest.apps.kyc.services.levels import (
    KycFacts,
    completion_percentage,
    derive_kyc_level,
    derive_kyc_status,
    recompute_user_kyc,
)
from saveinvest.apps.users.models import Notification

FULL = dict(pan_verified=True, aadhaar_verified=True, liveness_verified=True, face_matched=True)


@pytest.mark.parametrize(
    "facts,level,status",
    [
        (KycFacts(), 0, "PENDING"),
        (KycFacts(aadhaar_verified=True), 0, "IN_PROGRESS"),
        (KycFacts(pan_verified=True), 1, "IN_PROGRESS"),
        (KycFacts(pan_verified=True, aadhaar_verified=True, liveness_verified=True), 1, "IN_PROGRESS"),
        (KycFacts(**FULL), 2, "APPROVED"),
    ],
)
def test_level_and_status_are_derived(facts, level, status):
    assert derive_kyc_level(facts) == level
    assert derive_kyc_status(facts) == status


def test_bank_fact_does_not_raise_level():
    assert derive_kyc_level(KycFacts(bank_verified=True)) == 0


def test_completion_percentage():
    assert completion_percentage(KycFacts()) == 0
    assert completion_percentage(KycFacts(pan_verified=True)) == 25
    assert completion_percentage(KycFacts(**FULL, bank_verified=True)) == 100


def test_recompute_persists_and_notifies(user):
    doc = KycDocument.objects.get(user=user)
    for attr, value in FULL.items():
        setattr(doc, attr, value)
    doc.save()

    assert recompute_user_kyc(doc, user) == (2, "APPROVED")

    user.refresh_from_db()
    assert user.kyc_level == 2
    kinds = set(Notification.objects.filter(user=user).values_list("kind", flat=True))
    assert {"kyc_level_up", "kyc_approved"} <= kinds
    assert DataAccessLog.objects.filter(user=user, resource="kyc.verification").exists()


def test_recompute_without_level_change_sends_nothing(user):
    doc = KycDocument.objects.get(user=user)
    recompute_user_kyc(doc, user)
    assert not Notification.objects.filter(user=user, kind="kyc_level_up").exists()
