import pytest
import requests

from saveinvest.apps.banking.models import BankAccount
from saveinvest.apps.kyc.models import KycDocument
from saveinvest.apps.kyc.services.providers import (
    HttpVerificationProvider,
    MockBankProvider,
    get_provider,
)
from saveinvest.apps.kyc.services.verification import (
    KycVerificationService,
    admin_reset,
    admin_update_status,
    kyc_status,
)
from saveinvest.apps.users.models import Notification
from saveinvest.errors import (
    ConflictError,
    PrerequisiteError,
    UpstreamProviderError,
    ValidationError,
    VerificationFailedError,
)

AADHAAR = "234567890123"


def _verify_aadhaar(service, user, number=AADHAAR):
    started = service.initiate_aadhaar(user, number)
    return service.verify_aadhaar(user, started["reference_id"], number[-6:])


class TestPan:
    def test_verify_pan_raises_level(self, user, kyc_service):
        result = kyc_service.verify_pan(user, "abcde1234f", "Asha Rao")
        assert result["verified"] is True
        assert result["pan_number"] == "ABCDE1234F"
        assert result["kyc_level"] == 1

        user.refresh_from_db()
        assert (user.kyc_level, user.kyc_status) == (1, "IN_PROGRESS")

    def test_invalid_format_is_rejected(self, user, kyc_service):
        with pytest.raises(ValidationError):
            kyc_service.verify_pan(user, "ABCDE12345")

    def test_pan_owned_by_other_user_conflicts(self, user, make_user, kyc_service):
        kyc_service.verify_pan(user, "ABCDE1234F")
        other = make_user()

        with pytest.raises(ConflictError):
            kyc_service.verify_pan(other, "ABCDE1234F")

        doc = KycDocument.objects.get(user=other)
        assert doc.pan_number is None
        assert doc.pan_verified is False
        other.refresh_from_db()
        assert other.kyc_level == 0

    def test_provider_rejection_leaves_document_untouched(self, user, kyc_service):
        with pytest.raises(VerificationFailedError):
            kyc_service.verify_pan(user, "ABCZE1234F")
        assert KycDocument.objects.get(user=user).pan_verified is False

    def test_provider_timeout_fails_closed(self, user, monkeypatch):
        provider = HttpVerificationProvider(base_url="https://kyc.invalid", timeout=1)
        provider.kind = "pan"

        def boom(*args, **kwargs):
            raise requests.Timeout("read timed out")

        monkeypatch.setattr(provider.session, "post", boom)
        service = KycVerificationService(providers={"pan": provider})

        with pytest.raises(UpstreamProviderError):
            service.verify_pan(user, "ABCDE1234F")
        assert KycDocument.objects.get(user=user).pan_verified is False

    def test_repeat_verification_is_idempotent(self, user, kyc_service):
        kyc_service.verify_pan(user, "ABCDE1234F")
        again = kyc_service.verify_pan(user, "ABCDE1234F")
        assert again["kyc_level"] == 1
        assert Notification.objects.filter(user=user, kind="kyc_level_up").count() == 1


class TestAadhaar:
    def test_otp_flow_marks_aadhaar_verified(self, user, kyc_service):
        result = _verify_aadhaar(kyc_service, user)
        assert result["aadhaar_number"] == "XXXX-XXXX-0123"

        doc = KycDocument.objects.get(user=user)
        assert doc.aadhaar_verified is True
        assert doc.aadhaar_last4 == "0123"
        assert AADHAAR not in doc.aadhaar_encrypted

    def test_reference_is_single_use(self, user, kyc_service):
        started = kyc_service.initiate_aadhaar(user, AADHAAR)
        kyc_service.verify_aadhaar(user, started["reference_id"], AADHAAR[-6:])
        with pytest.raises(ValidationError):
            kyc_service.verify_aadhaar(user, started["reference_id"], AADHAAR[-6:])

    def test_wrong_otp_burns_attempts(self, user, kyc_service, settings):
        settings.AADHAAR_OTP_MAX_ATTEMPTS = 2
        started = kyc_service.initiate_aadhaar(user, AADHAAR)
        ref = started["reference_id"]

        with pytest.raises(VerificationFailedError):
            kyc_service.verify_aadhaar(user, ref, "000000")
        with pytest.raises(VerificationFailedError, match="Too many attempts"):
            kyc_service.verify_aadhaar(user, ref, "000000")
        with pytest.raises(ValidationError):
            kyc_service.verify_aadhaar(user, ref, AADHAAR[-6:])

    def test_reference_belongs_to_its_user(self, user, make_user, kyc_service):
        started = kyc_service.initiate_aadhaar(user, AADHAAR)
        with pytest.raises(ValidationError):
            kyc_service.verify_aadhaar(make_user(), started["reference_id"], AADHAAR[-6:])

    def test_aadhaar_bound_to_other_user_conflicts(self, user, make_user, kyc_service):
        _verify_aadhaar(kyc_service, user)
        with pytest.raises(ConflictError):
            kyc_service.initiate_aadhaar(make_user(), AADHAAR)


class TestLiveness:
    def test_requires_aadhaar_first(self, user, kyc_service):
        with pytest.raises(PrerequisiteError) as exc:
            kyc_service.verify_liveness(user, {})
        assert exc.value.next_steps == ["Verify PAN card", "Verify Aadhaar"]

    def test_low_score_fails(self, user, kyc_service):
        kyc_service.verify_pan(user, "ABCDE1234F")
        _verify_aadhaar(kyc_service, user)
        with pytest.raises(VerificationFailedError):
            kyc_service.verify_liveness(user, {"score_hint": 40})
        assert KycDocument.objects.get(user=user).liveness_verified is False

    def test_face_mismatch_fails(self, user, kyc_service):
        _verify_aadhaar(kyc_service, user)
        with pytest.raises(VerificationFailedError):
            kyc_service.verify_liveness(user, {"similarity_hint": 10})

    def test_full_kyc_reaches_level2(self, user, kyc_service):
        kyc_service.verify_pan(user, "ABCDE1234F")
        _verify_aadhaar(kyc_service, user)
        result = kyc_service.verify_liveness(user, {"score_hint": 88})

        assert result["kyc_level"] == 2
        assert result["kyc_status"] == "APPROVED"
        assert Notification.objects.filter(user=user, kind="kyc_approved").exists()


class TestBank:
    def test_requires_pan(self, user, kyc_service):
        with pytest.raises(PrerequisiteError):
            kyc_service.verify_bank(user, "123456789012", "HDFC0001234", "Asha Rao")
        assert not BankAccount.objects.filter(user=user).exists()

    def test_penny_drop_creates_verified_primary_account(self, user, kyc_service):
        kyc_service.verify_pan(user, "ABCDE1234F")
        result = kyc_service.verify_bank(user, "123456789012", "HDFC0001234", "Asha Rao")

        assert result["account_number"] == "****9012"
        assert result["bank_name"] == "HDFC Bank"
        account = BankAccount.objects.get(user=user)
        assert account.is_verified and account.is_primary
        assert KycDocument.objects.get(user=user).bank_verified is True
        # Bank verification does not move the level
        assert result["kyc_level"] == 1


def test_get_provider_uses_settings(settings):
    settings.KYC_PROVIDERS = {
        **settings.KYC_PROVIDERS,
        "bank": "saveinvest.apps.kyc.services.providers.MockBankProvider",
    }
    assert isinstance(get_provider("bank"), MockBankProvider)


def test_unconfigured_provider_kind():
    with pytest.raises(UpstreamProviderError):
        get_provider("retina")


def test_status_masks_identifiers(user, kyc_service):
    kyc_service.verify_pan(user, "ABCDE1234F")
    _verify_aadhaar(kyc_service, user)
    status = kyc_status(user)
    assert status["pan_number"] == "ABCDE****F"
    assert status["aadhaar_number"] == "XXXX-XXXX-0123"
    assert status["completion_percentage"] == 50


def test_admin_rejection_needs_reason(user):
    with pytest.raises(ValidationError):
        admin_update_status(user, "REJECTED")
    admin_update_status(user, "REJECTED", "Blurry documents")
    user.refresh_from_db()
    assert user.kyc_status == "REJECTED"
    assert KycDocument.objects.get(user=user).rejection_reason == "Blurry documents"


def test_admin_cannot_approve_below_level2(user, kyc_service):
    kyc_service.verify_pan(user, "ABCDE1234F")
    with pytest.raises(ValidationError):
        admin_update_status(user, "APPROVED")
    user.refresh_from_db()
    assert (user.kyc_level, user.kyc_status) == (1, "IN_PROGRESS")


def test_admin_approves_level2_user(investor):
    admin_update_status(investor, "UNDER_REVIEW")
    admin_update_status(investor, "APPROVED")
    investor.refresh_from_db()
    assert (investor.kyc_level, investor.kyc_status) == (2, "APPROVED")


def test_admin_reset_clears_facts(user, kyc_service):
    kyc_service.verify_pan(user, "ABCDE1234F")
    admin_reset(user, "Fraud review")
    user.refresh_from_db()
    doc = KycDocument.objects.get(user=user)
    assert user.kyc_level == 0
    assert doc.pan_number is None and not doc.pan_verified


KYC_STEPS = {
    "pan": lambda service, user: service.verify_pan(user, "ABCDE1234F"),
    "rejected_pan": lambda service, user: service.verify_pan(user, "ABCZE1234F"),
    "aadhaar": lambda service, user: _verify_aadhaar(service, user),
    "liveness": lambda service, user: service.verify_liveness(user, {"score_hint": 88}),
    "weak_liveness": lambda service, user: service.verify_liveness(user, {"score_hint": 40}),
}


@pytest.mark.parametrize(
    "order",
    [
        ["aadhaar", "liveness", "pan", "aadhaar", "liveness", "pan"],
        ["liveness", "pan", "rejected_pan", "aadhaar", "weak_liveness", "liveness", "pan"],
        ["pan", "aadhaar", "weak_liveness", "rejected_pan", "liveness", "aadhaar", "weak_liveness"],
    ],
)
def test_kyc_level_never_drops(user, kyc_service, order):
    levels = []
    for step in order:
        try:
            KYC_STEPS[step](kyc_service, user)
        except (PrerequisiteError, VerificationFailedError):
            pass
        user.refresh_from_db()
        levels.append(user.kyc_level)

    assert levels == sorted(levels)
    assert levels[-1] == 2
