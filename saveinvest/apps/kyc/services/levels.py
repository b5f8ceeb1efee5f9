"""
Pure derivations over KYC facts.

Level and status are never incremented; they are recomputed from the full fact
set after every verification so that out-of-order or repeated steps cannot leave
them inconsistent.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class KycFacts:
    pan_verified: bool = False
    aadhaar_verified: bool = False
    liveness_verified: bool = False
    face_matched: bool = False
    bank_verified: bool = False

    @classmethod
    def from_document(cls, doc) -> "KycFacts":
        return cls(
            pan_verified=doc.pan_verified,
            aadhaar_verified=doc.aadhaar_verified,
            liveness_verified=doc.liveness_verified,
            face_matched=doc.face_matched,
            bank_verified=doc.bank_verified,
        )

    @property
    def fully_verified(self) -> bool:
        return (
            self.pan_verified
            and self.aadhaar_verified
            and self.liveness_verified
            and self.face_matched
        )


def derive_kyc_level(facts: KycFacts) -> int:
    if facts.fully_verified:
        return 2
    if facts.pan_verified:
        return 1
    return 0


def derive_kyc_status(facts: KycFacts) -> str:
    if facts.fully_verified:
        return "APPROVED"
    if facts.pan_verified or facts.aadhaar_verified or facts.liveness_verified:
        return "IN_PROGRESS"
    return "PENDING"


def completion_percentage(facts: KycFacts) -> int:
    steps = [
        facts.pan_verified,
        facts.aadhaar_verified,
        facts.liveness_verified,
        facts.bank_verified,
    ]
    return round(sum(steps) / len(steps) * 100)


def recompute_user_kyc(doc, user=None) -> tuple[int, str]:
    """
    Re-derives level and status from ``doc`` and persists them on the user.
    Must run inside the same transaction as the fact write.
    """
    facts = KycFacts.from_document(doc)
    user = user or doc.user
    user.kyc_level = derive_kyc_level(facts)
    user.kyc_status = derive_kyc_status(facts)
    user.save(update_fields=["kyc_level", "kyc_status", "updated_at"])
    return user.kyc_level, user.kyc_status
