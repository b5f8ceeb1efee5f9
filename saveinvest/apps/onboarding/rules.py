"""
Onboarding state machine.

The current step is never stored. It is recomputed from the user's facts on
every query, so it cannot drift from the verification state underneath it.
All functions here are pure.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from django.conf import settings

REGISTRATION = "REGISTRATION"
PROFILE_SETUP = "PROFILE_SETUP"
PIN_SETUP = "PIN_SETUP"
BIOMETRIC_SETUP = "BIOMETRIC_SETUP"
KYC_IN_PROGRESS = "KYC_IN_PROGRESS"
KYC_COMPLETE = "KYC_COMPLETE"
DASHBOARD = "DASHBOARD"

ACTION_PAYMENT = "PAYMENT"
ACTION_INVESTMENT = "INVESTMENT"

STEP_PAN = "Verify PAN card"
STEP_AADHAAR = "Verify Aadhaar"
STEP_LIVENESS = "Complete liveness verification"


@dataclass(frozen=True)
class OnboardingFacts:
    profile_complete: bool = False
    pin_set: bool = False
    biometric_enabled: bool = False
    pan_verified: bool = False
    aadhaar_verified: bool = False
    liveness_verified: bool = False
    bank_account_added: bool = False
    has_verified_bank_account: bool = False


@dataclass(frozen=True)
class Permissions:
    can_make_payments: bool
    max_payment_amount: Optional[int]
    can_invest: bool
    can_withdraw: bool

    def as_dict(self) -> dict:
        return {
            "can_make_payments": self.can_make_payments,
            "max_payment_amount": self.max_payment_amount,
            "can_invest": self.can_invest,
            "can_withdraw": self.can_withdraw,
        }


@dataclass(frozen=True)
class KycRequirement:
    required: bool
    required_level: int
    current_level: int
    message: Optional[str] = None
    next_steps: tuple = ()

    def as_dict(self) -> dict:
        body = {
            "required": self.required,
            "required_level": self.required_level,
            "current_level": self.current_level,
        }
        if self.message:
            body["message"] = self.message
        if self.next_steps:
            body["next_steps"] = list(self.next_steps)
        return body


def derive_step(facts: OnboardingFacts) -> str:
    if not facts.profile_complete:
        return PROFILE_SETUP
    if not facts.pin_set:
        return PIN_SETUP
    if not facts.biometric_enabled:
        return BIOMETRIC_SETUP
    if facts.pan_verified and facts.aadhaar_verified and facts.liveness_verified:
        return KYC_COMPLETE
    return DASHBOARD


def payment_cap() -> int:
    return settings.KYC_LEVEL0_PAYMENT_CAP


def derive_permissions(kyc_level: int, has_verified_bank_account: bool) -> Permissions:
    return Permissions(
        can_make_payments=True,
        max_payment_amount=None if kyc_level >= 1 else payment_cap(),
        can_invest=kyc_level >= 2,
        can_withdraw=bool(has_verified_bank_account),
    )


def missing_investment_steps(
    pan_verified: bool, aadhaar_verified: bool, liveness_verified: bool
) -> List[str]:
    """Missing steps for level 2, always PAN first, then Aadhaar, then liveness."""
    steps = []
    if not pan_verified:
        steps.append(STEP_PAN)
    if not aadhaar_verified:
        steps.append(STEP_AADHAAR)
    if not liveness_verified:
        steps.append(STEP_LIVENESS)
    return steps


def check_kyc_requirement(
    action: str,
    kyc_level: int,
    amount: Optional[Decimal] = None,
    facts: Optional[OnboardingFacts] = None,
) -> KycRequirement:
    """
    Whether ``action`` is blocked at ``kyc_level``.

    For investments, ``facts`` narrows the listed steps to the ones still
    missing; without facts every level-2 step is listed.
    """
    if action == ACTION_PAYMENT:
        cap = payment_cap()
        if amount is not None and Decimal(str(amount)) > cap and kyc_level < 1:
            return KycRequirement(
                required=True,
                required_level=1,
                current_level=kyc_level,
                message=f"KYC Level 1 required for payments above ₹{cap:,}",
                next_steps=(STEP_PAN,),
            )
        return KycRequirement(required=False, required_level=0, current_level=kyc_level)

    if action == ACTION_INVESTMENT:
        if kyc_level < 2:
            if facts is None:
                steps = [STEP_PAN, STEP_AADHAAR, STEP_LIVENESS]
            else:
                steps = missing_investment_steps(
                    facts.pan_verified, facts.aadhaar_verified, facts.liveness_verified
                ) or [STEP_LIVENESS]
            return KycRequirement(
                required=True,
                required_level=2,
                current_level=kyc_level,
                message="Full KYC required for investments",
                next_steps=tuple(steps),
            )
        return KycRequirement(required=False, required_level=2, current_level=kyc_level)

    raise ValueError(f"Unknown action {action!r}")


def next_steps(facts: OnboardingFacts) -> List[str]:
    """One KYC hint for the earliest missing fact, then the bank-account hint."""
    steps = []
    if not facts.pan_verified and not facts.aadhaar_verified:
        steps.append("Complete KYC to unlock all features")
    elif not facts.pan_verified:
        steps.append("Verify PAN card to unlock higher payment limits")
    elif not facts.aadhaar_verified:
        steps.append("Verify Aadhaar to unlock investments")
    elif not facts.liveness_verified:
        steps.append("Complete liveness check to unlock investments")

    if not facts.bank_account_added:
        steps.append("Add bank account for withdrawals")
    if not steps:
        steps.append("Onboarding complete! Start saving and investing.")
    return steps


def completion_status(facts: OnboardingFacts) -> dict:
    return {
        "profile_complete": facts.profile_complete,
        "pin_setup": facts.pin_set,
        "biometric_enabled": facts.biometric_enabled,
        "pan_verified": facts.pan_verified,
        "aadhaar_verified": facts.aadhaar_verified,
        "liveness_verified": facts.liveness_verified,
        "bank_account_added": facts.bank_account_added,
    }
