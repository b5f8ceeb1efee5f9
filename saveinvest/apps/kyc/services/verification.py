"""
KYC fact verification.

Each operation validates input, checks prerequisites and conflicts, calls the
configured provider, and only then writes its single fact together with the
recomputed level and status in one transaction. A failure at any point leaves
the document untouched.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from saveinvest.apps.audit.models import DataAccessLog
from saveinvest.apps.kyc.models import KycDocument
from saveinvest.apps.kyc.services.levels import (
    KycFacts,
    completion_percentage,
    derive_kyc_level,
    recompute_user_kyc,
)
from saveinvest.apps.kyc.services.otp_store import AadhaarOtpStore
from saveinvest.apps.kyc.services.providers import VerificationProvider, get_provider
from saveinvest.apps.users.crypto import (
    decrypt_account_number,
    encrypt_account_number,
    fingerprint,
    mask_aadhaar,
)
from saveinvest.apps.users.models import AppUser, Notification
from saveinvest.errors import (
    ConflictError,
    PrerequisiteError,
    ValidationError,
    VerificationFailedError,
)

logger = logging.getLogger(__name__)

PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
AADHAAR_RE = re.compile(r"^[0-9]{12}$")
OTP_RE = re.compile(r"^[0-9]{6}$")

ADMIN_STATUSES = ("UNDER_REVIEW", "APPROVED", "REJECTED")


def _audit(user, action: str, resource: str, actor: str = "system", **context):
    DataAccessLog.objects.create(
        user=user, actor=actor, resource=resource, action=action, context=context
    )


class KycVerificationService:
    def __init__(
        self,
        providers: Optional[Dict[str, VerificationProvider]] = None,
        otp_store: Optional[AadhaarOtpStore] = None,
    ):
        self._providers = dict(providers or {})
        self._otp_store = otp_store

    def provider(self, kind: str) -> VerificationProvider:
        if kind not in self._providers:
            self._providers[kind] = get_provider(kind)
        return self._providers[kind]

    @property
    def otp_store(self) -> AadhaarOtpStore:
        if self._otp_store is None:
            self._otp_store = AadhaarOtpStore()
        return self._otp_store

    def _locked_document(self, user: AppUser) -> KycDocument:
        doc, _ = KycDocument.objects.select_for_update().get_or_create(user=user)
        return doc

    # ---------------------------
    # PAN
    # ---------------------------

    def verify_pan(self, user: AppUser, pan_number: str, name: str = None) -> Dict[str, Any]:
        pan_number = (pan_number or "").strip().upper()
        if not PAN_RE.match(pan_number):
            raise ValidationError("Invalid PAN format")

        doc = KycDocument.objects.get(user=user)
        if doc.pan_verified and doc.pan_number == pan_number:
            return {
                "verified": True,
                "pan_number": pan_number,
                "name": doc.pan_name,
                "kyc_level": user.kyc_level,
            }

        if (
            KycDocument.objects.filter(pan_number=pan_number, pan_verified=True)
            .exclude(user=user)
            .exists()
        ):
            raise ConflictError("PAN card already registered with another account")

        result = self.provider("pan").verify({"pan_number": pan_number, "name": name})
        if not result.verified:
            logger.info(f"PAN verification rejected for user {user.id}: {result.reason}")
            raise VerificationFailedError(result.reason or "PAN verification failed")

        try:
            with transaction.atomic():
                doc = self._locked_document(user)
                doc.pan_number = pan_number
                doc.pan_name = result.data.get("name") or name
                doc.pan_verified = True
                doc.save(update_fields=["pan_number", "pan_name", "pan_verified", "updated_at"])
                level, status = recompute_user_kyc(doc, user)
                _audit(user, "write", "kyc.pan")
        except IntegrityError as e:
            raise ConflictError("PAN card already registered with another account") from e

        logger.info(f"PAN verified for user {user.id}; level={level}")
        return {
            "verified": True,
            "pan_number": pan_number,
            "name": doc.pan_name,
            "kyc_level": level,
            "kyc_status": status,
        }

    # ---------------------------
    # Aadhaar (OTP, two steps)
    # ---------------------------

    def initiate_aadhaar(self, user: AppUser, aadhaar_number: str) -> Dict[str, Any]:
        aadhaar_number = (aadhaar_number or "").replace(" ", "")
        if not AADHAAR_RE.match(aadhaar_number):
            raise ValidationError("Invalid Aadhaar format")

        digest = fingerprint(aadhaar_number)
        if KycDocument.objects.filter(aadhaar_hash=digest).exclude(user=user).exists():
            raise ConflictError("Aadhaar already registered with another account")

        otp_data = self.provider("aadhaar").send_otp(aadhaar_number)
        reference_id = self.otp_store.create(
            user.id, encrypt_account_number(aadhaar_number), otp_data
        )
        logger.info(f"Aadhaar OTP sent for user {user.id}")
        return {
            "reference_id": reference_id,
            "expires_in": self.otp_store.ttl,
            "message": "OTP sent to Aadhaar-linked mobile number",
        }

    def verify_aadhaar(self, user: AppUser, reference_id: str, otp: str) -> Dict[str, Any]:
        if not OTP_RE.match(otp or ""):
            raise ValidationError("OTP must be 6 digits")

        pending = self.otp_store.get(reference_id)
        if not pending or pending.get("user_id") != user.id:
            raise ValidationError("Invalid or expired reference ID")

        aadhaar_encrypted = pending["aadhaar_encrypted"]
        aadhaar_number = decrypt_account_number(aadhaar_encrypted)
        payload = dict(pending.get("otp") or {})
        payload.update({"otp": otp, "aadhaar_number": aadhaar_number})

        result = self.provider("aadhaar").verify(payload)
        if not result.verified:
            remaining = self.otp_store.record_failed_attempt(
                reference_id, settings.AADHAAR_OTP_MAX_ATTEMPTS
            )
            logger.info(f"Aadhaar OTP rejected for user {user.id}; {remaining} attempts left")
            if remaining == 0:
                raise VerificationFailedError(
                    "Invalid OTP. Too many attempts, please request a new OTP"
                )
            raise VerificationFailedError(result.reason or "Invalid OTP")

        try:
            with transaction.atomic():
                doc = self._locked_document(user)
                doc.aadhaar_encrypted = aadhaar_encrypted
                doc.aadhaar_hash = fingerprint(aadhaar_number)
                doc.aadhaar_last4 = aadhaar_number[-4:]
                doc.aadhaar_verified = True
                doc.provider_data = {**doc.provider_data, "aadhaar": result.data}
                doc.save(
                    update_fields=[
                        "aadhaar_encrypted",
                        "aadhaar_hash",
                        "aadhaar_last4",
                        "aadhaar_verified",
                        "provider_data",
                        "updated_at",
                    ]
                )
                level, status = recompute_user_kyc(doc, user)
                _audit(user, "write", "kyc.aadhaar")
        except IntegrityError as e:
            raise ConflictError("Aadhaar already registered with another account") from e

        self.otp_store.delete(reference_id)
        logger.info(f"Aadhaar verified for user {user.id}; level={level}")
        return {
            "verified": True,
            "aadhaar_number": mask_aadhaar(aadhaar_number),
            "name": result.data.get("name"),
            "dob": result.data.get("dob"),
            "gender": result.data.get("gender"),
            "kyc_level": level,
            "kyc_status": status,
        }

    # ---------------------------
    # Bank (penny drop)
    # ---------------------------

    def verify_bank(
        self, user: AppUser, account_number: str, ifsc_code: str, holder_name: str
    ) -> Dict[str, Any]:
        from saveinvest.apps.banking.services import BankAccountService

        banking = BankAccountService(bank_provider=self.provider("bank"))
        account_number, ifsc_code, holder_name = banking.validate_details(
            account_number, ifsc_code, holder_name
        )

        doc = KycDocument.objects.get(user=user)
        if not doc.pan_verified:
            raise PrerequisiteError(
                "PAN verification required before bank verification",
                next_steps=["Verify PAN card"],
            )

        result = banking.penny_drop(account_number, ifsc_code, holder_name)
        with transaction.atomic():
            account = banking.find_or_create(user, account_number, ifsc_code, holder_name)
            account = banking.mark_verified(account, result.data.get("bank_name"))
            doc = self._locked_document(user)
            level, status = mark_bank_verified(doc, user)

        logger.info(f"Bank account verified for user {user.id}")
        return {
            "verified": True,
            "account_id": account.id,
            "account_number": account.masked_number(),
            "bank_name": account.bank_name,
            "kyc_level": level,
            "kyc_status": status,
        }

    # ---------------------------
    # Liveness + face match
    # ---------------------------

    def verify_liveness(self, user: AppUser, payload: Dict[str, Any]) -> Dict[str, Any]:
        doc = KycDocument.objects.get(user=user)
        if not doc.aadhaar_verified:
            steps = [] if doc.pan_verified else ["Verify PAN card"]
            raise PrerequisiteError(
                "Aadhaar verification required before liveness check",
                next_steps=steps + ["Verify Aadhaar"],
            )

        liveness = self.provider("liveness").verify(payload)
        score = int(liveness.data.get("score", 0))
        if not liveness.verified or score < settings.LIVENESS_MIN_SCORE:
            logger.info(f"Liveness failed for user {user.id}; score={score}")
            raise VerificationFailedError(liveness.reason or "Liveness check failed")

        face = self.provider("face_match").verify(payload)
        similarity = int(face.data.get("similarity", 0))
        if not face.verified or similarity < settings.FACE_MATCH_MIN_SIMILARITY:
            logger.info(f"Face match failed for user {user.id}; similarity={similarity}")
            raise VerificationFailedError(face.reason or "Face does not match Aadhaar photo")

        with transaction.atomic():
            doc = self._locked_document(user)
            doc.liveness_score = score
            doc.liveness_verified = True
            doc.face_matched = True
            doc.verified_at = timezone.now()
            doc.save(
                update_fields=[
                    "liveness_score",
                    "liveness_verified",
                    "face_matched",
                    "verified_at",
                    "updated_at",
                ]
            )
            level, status = recompute_user_kyc(doc, user)
            _audit(user, "write", "kyc.liveness", score=score)

        logger.info(f"Liveness verified for user {user.id}; level={level}")
        return {
            "verified": True,
            "liveness_score": score,
            "face_match_similarity": similarity,
            "kyc_level": level,
            "kyc_status": status,
        }


def mark_bank_verified(doc: KycDocument, user: AppUser = None) -> tuple[int, str]:
    """Sets the bank fact on a locked document and re-derives the user's KYC."""
    if not doc.bank_verified:
        doc.bank_verified = True
        doc.save(update_fields=["bank_verified", "updated_at"])
    return recompute_user_kyc(doc, user)


def kyc_status(user: AppUser) -> Dict[str, Any]:
    doc = KycDocument.objects.get(user=user)
    facts = KycFacts.from_document(doc)
    return {
        "kyc_level": user.kyc_level,
        "kyc_status": user.kyc_status,
        "pan_verified": doc.pan_verified,
        "pan_number": f"{doc.pan_number[:5]}****{doc.pan_number[-1]}" if doc.pan_number else None,
        "aadhaar_verified": doc.aadhaar_verified,
        "aadhaar_number": mask_aadhaar(doc.aadhaar_last4) if doc.aadhaar_last4 else None,
        "liveness_verified": doc.liveness_verified,
        "face_matched": doc.face_matched,
        "bank_verified": doc.bank_verified,
        "completion_percentage": completion_percentage(facts),
        "rejection_reason": doc.rejection_reason,
    }


# ---------------------------
# Admin
# ---------------------------


def admin_update_status(
    user: AppUser, status: str, rejection_reason: str = None, actor: str = "admin"
) -> AppUser:
    """Manual review outcome. Does not touch facts or level; APPROVED needs level 2 facts."""
    if status not in ADMIN_STATUSES:
        raise ValidationError(f"Status must be one of {', '.join(ADMIN_STATUSES)}")
    if status == "REJECTED" and not rejection_reason:
        raise ValidationError("Rejection reason is required")

    with transaction.atomic():
        doc = KycDocument.objects.select_for_update().get(user=user)
        if status == "APPROVED" and derive_kyc_level(KycFacts.from_document(doc)) < 2:
            raise ValidationError("Only users with every level 2 fact verified can be approved")
        doc.rejection_reason = rejection_reason if status == "REJECTED" else None
        doc.save(update_fields=["rejection_reason", "updated_at"])
        user.kyc_status = status
        user.save(update_fields=["kyc_status", "updated_at"])
        _audit(user, "update", "kyc.status", actor=actor, new_status=status)
        if status == "REJECTED":
            Notification.objects.create(
                user=user, kind="kyc_rejected", payload={"reason": rejection_reason}
            )
    return user


def admin_reset(user: AppUser, reason: str, actor: str = "admin") -> AppUser:
    """Clears every fact and drops the user to level 0. The only path that lowers a level."""
    if not reason:
        raise ValidationError("Reset reason is required")

    with transaction.atomic():
        doc = KycDocument.objects.select_for_update().get(user=user)
        doc.pan_number = None
        doc.pan_name = None
        doc.pan_verified = False
        doc.aadhaar_encrypted = None
        doc.aadhaar_hash = None
        doc.aadhaar_last4 = None
        doc.aadhaar_verified = False
        doc.liveness_score = None
        doc.liveness_verified = False
        doc.face_matched = False
        doc.bank_verified = False
        doc.provider_data = {}
        doc.verified_at = None
        doc.rejection_reason = reason
        doc.save()
        user.kyc_level = 0
        user.kyc_status = "REJECTED"
        user.save(update_fields=["kyc_level", "kyc_status", "updated_at"])
        _audit(user, "delete", "kyc.facts", actor=actor, reason=reason)
        Notification.objects.create(user=user, kind="kyc_rejected", payload={"reason": reason})
    logger.info(f"KYC reset for user {user.id}")
    return user
