import itertools
from datetime import date
from decimal import Decimal

import fakeredis
import pytest
from django.db import transaction

from saveinvest.apps.investments.models import InvestmentProduct, NavHistory
from saveinvest.apps.investments.services.nav import NavFeed
from saveinvest.apps.kyc.models import KycDocument
from saveinvest.apps.kyc.services.levels import recompute_user_kyc
from saveinvest.apps.kyc.services.otp_store import AadhaarOtpStore
from saveinvest.apps.kyc.services.verification import KycVerificationService
from saveinvest.apps.savings.services import ledger
from saveinvest.apps.users.models import AppUser

_mobiles = itertools.count(9000000001)


@pytest.fixture
def make_user(db):
    def _make(**fields):
        fields.setdefault("mobile", str(next(_mobiles)))
        return AppUser.objects.create(**fields)

    return _make


@pytest.fixture
def user(make_user):
    return make_user(name="Asha Rao", email="asha@example.com")


def grant_full_kyc(user: AppUser) -> AppUser:
    doc = KycDocument.objects.get(user=user)
    doc.pan_verified = True
    doc.aadhaar_verified = True
    doc.liveness_verified = True
    doc.face_matched = True
    doc.save()
    recompute_user_kyc(doc, user)
    return user


@pytest.fixture
def full_kyc():
    return grant_full_kyc


@pytest.fixture
def investor(make_user):
    return grant_full_kyc(make_user(name="Ravi Kumar", email="ravi@example.com"))


@pytest.fixture
def fund_wallet():
    def _fund(user, amount):
        with transaction.atomic():
            wallet, _ = ledger.credit(user, Decimal(amount), description="test funding")
        return wallet

    return _fund


@pytest.fixture
def product(db):
    product = InvestmentProduct.objects.create(
        name="Liquid Fund", category="DEBT", risk_level="LOW", min_investment=Decimal("100.00")
    )
    NavHistory.objects.create(product=product, nav=Decimal("25.0000"), date=date(2026, 1, 1))
    return product


@pytest.fixture
def unpriced_product(db):
    return InvestmentProduct.objects.create(
        name="New Equity Fund", category="EQUITY", risk_level="HIGH"
    )


@pytest.fixture
def nav_feed():
    return NavFeed(url="")


@pytest.fixture
def otp_store():
    return AadhaarOtpStore(redis_client=fakeredis.FakeRedis(), ttl=120)


@pytest.fixture
def kyc_service(otp_store):
    return KycVerificationService(otp_store=otp_store)
