"""Loads a user's facts from the database and feeds them to the pure onboarding rules."""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from saveinvest.apps.banking.models import BankAccount
from saveinvest.apps.kyc.models import KycDocument
from saveinvest.apps.onboarding import rules
from saveinvest.apps.users.models import AppUser
from saveinvest.errors import PrerequisiteError, ValidationError


def load_facts(user: AppUser) -> rules.OnboardingFacts:
    doc = KycDocument.objects.filter(user=user).first()
    accounts = BankAccount.objects.filter(user=user)
    return rules.OnboardingFacts(
        profile_complete=user.profile_complete,
        pin_set=user.pin_set,
        biometric_enabled=user.biometric_enabled,
        pan_verified=bool(doc and doc.pan_verified),
        aadhaar_verified=bool(doc and doc.aadhaar_verified),
        liveness_verified=bool(doc and doc.liveness_verified),
        bank_account_added=accounts.exists(),
        has_verified_bank_account=accounts.filter(is_verified=True).exists(),
    )


def permissions_for(user: AppUser, facts: Optional[rules.OnboardingFacts] = None) -> rules.Permissions:
    facts = facts or load_facts(user)
    return rules.derive_permissions(user.kyc_level, facts.has_verified_bank_account)


def get_status(user: AppUser) -> dict:
    facts = load_facts(user)
    return {
        "current_step": rules.derive_step(facts),
        "kyc_level": user.kyc_level,
        "kyc_status": user.kyc_status,
        "completion_status": rules.completion_status(facts),
        "next_steps": rules.next_steps(facts),
        "permissions": permissions_for(user, facts).as_dict(),
    }


def check_requirement(user: AppUser, action: str, amount: Optional[Decimal] = None) -> rules.KycRequirement:
    action = (action or "").upper()
    if action not in (rules.ACTION_PAYMENT, rules.ACTION_INVESTMENT):
        raise ValidationError("Action must be PAYMENT or INVESTMENT")
    facts = load_facts(user) if action == rules.ACTION_INVESTMENT else None
    return rules.check_kyc_requirement(action, user.kyc_level, amount, facts)


def require_payment_allowed(user: AppUser, amount: Decimal) -> None:
    req = check_requirement(user, rules.ACTION_PAYMENT, amount)
    if req.required:
        raise PrerequisiteError(req.message, next_steps=list(req.next_steps))


def require_investment_allowed(user: AppUser) -> None:
    req = check_requirement(user, rules.ACTION_INVESTMENT)
    if req.required:
        raise PrerequisiteError(req.message, next_steps=list(req.next_steps))


def require_withdrawal_allowed(user: AppUser) -> None:
    if not permissions_for(user).can_withdraw:
        raise PrerequisiteError(
            "A verified bank account is required for withdrawals",
            next_steps=["Add bank account for withdrawals"],
        )
