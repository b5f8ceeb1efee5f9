"""
Identity verification providers.

Every provider implements ``verify(payload) -> VerificationResult``. The concrete
class for each kind is configured in ``settings.KYC_PROVIDERS`` so production can
point at a real vendor while development and tests use the deterministic mocks.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from django.conf import settings
from django.utils.module_loading import import_string

from saveinvest.errors import UpstreamProviderError

logger = logging.getLogger(__name__)

# IFSC prefix -> bank name for the mock penny drop
BANK_NAMES = {
    "SBIN": "State Bank of India",
    "HDFC": "HDFC Bank",
    "ICIC": "ICICI Bank",
    "AXIS": "Axis Bank",
    "YESB": "Yes Bank",
    "PUNB": "Punjab National Bank",
    "KKBK": "Kotak Mahindra Bank",
}


def bank_name_for_ifsc(ifsc: str) -> str:
    return BANK_NAMES.get((ifsc or "")[:4], "Unknown Bank")


@dataclass
class VerificationResult:
    verified: bool
    data: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[str] = None


class VerificationProvider:
    """Capability contract shared by every provider kind."""

    kind = ""

    def verify(self, payload: Dict[str, Any]) -> VerificationResult:
        raise NotImplementedError


class HttpVerificationProvider(VerificationProvider):
    """
    Calls a vendor endpoint at ``{KYC_PROVIDER_BASE_URL}/{kind}/verify``.

    Timeouts, connection failures, non-2xx answers and unparsable bodies are all
    raised as UpstreamProviderError so the caller fails closed.
    """

    path = "verify"

    def __init__(self, base_url: str = None, api_key: str = None, timeout: float = None):
        self.base_url = (base_url or settings.KYC_PROVIDER_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.KYC_PROVIDER_API_KEY
        self.timeout = timeout or settings.KYC_PROVIDER_TIMEOUT
        # Use a session for connection pooling
        self.session = requests.Session()

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.base_url:
            raise UpstreamProviderError(f"{self.kind} provider is not configured")
        url = f"{self.base_url}/{self.kind}/{path}"
        try:
            r = self.session.post(
                url, json=payload, headers=self._headers(), timeout=self.timeout
            )
        except requests.Timeout as e:
            logger.warning(f"{self.kind} provider timed out after {self.timeout}s")
            raise UpstreamProviderError(f"{self.kind} provider timed out") from e
        except requests.RequestException as e:
            logger.warning(f"{self.kind} provider unreachable: {e}")
            raise UpstreamProviderError(f"{self.kind} provider unreachable") from e

        if r.status_code >= 400:
            raise UpstreamProviderError(
                f"{self.kind} provider failed ({r.status_code})"
            )
        try:
            return r.json()
        except ValueError as e:
            raise UpstreamProviderError(
                f"{self.kind} provider returned invalid JSON"
            ) from e

    def verify(self, payload: Dict[str, Any]) -> VerificationResult:
        body = self._post(self.path, payload)
        return VerificationResult(
            verified=bool(body.get("verified")),
            data=body.get("data") or {},
            reason=body.get("reason"),
        )


class HttpAadhaarProvider(HttpVerificationProvider):
    kind = "aadhaar"

    def send_otp(self, aadhaar_number: str) -> Dict[str, Any]:
        body = self._post("otp", {"aadhaar_number": aadhaar_number})
        if not body.get("otp_ref"):
            raise UpstreamProviderError("aadhaar provider returned no OTP reference")
        return body


# ---------------------------
# Development mocks
# ---------------------------


class MockPanProvider(VerificationProvider):
    kind = "pan"

    def verify(self, payload):
        pan = payload["pan_number"]
        # PANs with 'Z' as the entity letter simulate a mismatch in the registry
        if pan[3] == "Z":
            return VerificationResult(False, reason="PAN not found in registry")
        return VerificationResult(
            True,
            data={"name": payload.get("name") or "PAN HOLDER", "pan_status": "VALID"},
        )


class MockAadhaarProvider(VerificationProvider):
    """The OTP is always the last six digits of the Aadhaar number."""

    kind = "aadhaar"

    def send_otp(self, aadhaar_number: str) -> Dict[str, Any]:
        return {"otp_ref": secrets.token_hex(8), "expected_otp": aadhaar_number[-6:]}

    def verify(self, payload):
        expected = payload.get("expected_otp")
        if expected is None or payload.get("otp") != expected:
            return VerificationResult(False, reason="Invalid OTP")
        return VerificationResult(
            True,
            data={"name": "AADHAAR HOLDER", "dob": "1990-01-01", "gender": "U"},
        )


class MockBankProvider(VerificationProvider):
    kind = "bank"

    def verify(self, payload):
        ifsc = payload["ifsc_code"]
        return VerificationResult(
            True,
            data={
                "bank_name": bank_name_for_ifsc(ifsc),
                "holder_name": payload.get("holder_name"),
                "penny_drop_amount": "1.00",
            },
        )


class MockLivenessProvider(VerificationProvider):
    kind = "liveness"

    def verify(self, payload):
        score = int(payload.get("score_hint", 90))
        return VerificationResult(
            score >= settings.LIVENESS_MIN_SCORE,
            data={"score": score},
            reason=None if score >= settings.LIVENESS_MIN_SCORE else "Liveness check failed",
        )


class MockFaceMatchProvider(VerificationProvider):
    kind = "face_match"

    def verify(self, payload):
        similarity = int(payload.get("similarity_hint", 90))
        return VerificationResult(
            similarity >= settings.FACE_MATCH_MIN_SIMILARITY,
            data={"similarity": similarity},
            reason=None
            if similarity >= settings.FACE_MATCH_MIN_SIMILARITY
            else "Face does not match Aadhaar photo",
        )


def get_provider(kind: str) -> VerificationProvider:
    """Instantiates the configured provider for ``kind``."""
    try:
        path = settings.KYC_PROVIDERS[kind]
    except KeyError:
        raise UpstreamProviderError(f"No provider configured for {kind}")
    return import_string(path)()
