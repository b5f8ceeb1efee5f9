from decimal import Decimal

import pytest
from django.db import transaction

from saveinvest.apps.savings.models import SavingsWallet, Transaction
from saveinvest.apps.savings.services import ledger
from saveinvest.errors import InsufficientFundsError, ValidationError


def test_to_money_rounds_half_up():
    assert ledger.to_money("2.005") == Decimal("2.01")
    assert ledger.to_money(Decimal("2.004")) == Decimal("2.00")


def test_credit_and_debit_update_totals(user):
    with transaction.atomic():
        ledger.credit(user, "250.00")
        wallet, txn = ledger.debit(user, "100.00", txn_type="INVESTMENT")

    assert txn.status == "SUCCESS"
    assert wallet.balance == Decimal("150.00")
    stored = SavingsWallet.objects.get(user=user)
    assert stored.total_saved == Decimal("250.00")
    assert stored.total_invested == Decimal("100.00")


def test_debit_never_clamps(user, fund_wallet):
    fund_wallet(user, "50")
    with pytest.raises(InsufficientFundsError):
        with transaction.atomic():
            ledger.debit(user, "50.01", txn_type="WITHDRAWAL")

    assert SavingsWallet.objects.get(user=user).balance == Decimal("50.00")
    assert not Transaction.objects.filter(user=user, type="WITHDRAWAL").exists()


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_non_positive_amounts_rejected(user, amount):
    with pytest.raises(ValidationError):
        with transaction.atomic():
            ledger.credit(user, amount)


@pytest.mark.django_db(transaction=True)
def test_lock_wallet_requires_atomic_block(user):
    with pytest.raises(RuntimeError):
        ledger.lock_wallet(user)
