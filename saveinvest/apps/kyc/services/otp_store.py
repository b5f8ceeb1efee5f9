"""
Aadhaar OTP references kept in Redis.

A reference lives for ``AADHAAR_OTP_TTL`` seconds and is removed on success or
once the allowed number of wrong attempts is used up.
"""
import json
import secrets
import time
from typing import Any, Dict, Optional

from django.conf import settings
from redis import Redis

# Redis key prefix for OTP references
OTP_KEY_PREFIX = "kyc:aadhaar:otp:"


class AadhaarOtpStore:
    def __init__(self, redis_client: Optional[Redis] = None, ttl: Optional[int] = None):
        self.redis = redis_client or Redis.from_url(
            getattr(settings, "OTP_REDIS_URL", "redis://redis:6379/0")
        )
        self.ttl = ttl or settings.AADHAAR_OTP_TTL

    def _key(self, reference_id: str) -> str:
        return f"{OTP_KEY_PREFIX}{reference_id}"

    def create(self, user_id: int, aadhaar_encrypted: str, otp_data: Dict[str, Any]) -> str:
        """Stores a pending verification and returns its reference id."""
        reference_id = secrets.token_urlsafe(16)
        data = {
            "user_id": user_id,
            "aadhaar_encrypted": aadhaar_encrypted,
            "otp": otp_data,
            "attempts": 0,
            "created_at": int(time.time()),
        }
        self.redis.setex(self._key(reference_id), self.ttl, json.dumps(data))
        return reference_id

    def get(self, reference_id: str) -> Optional[Dict[str, Any]]:
        raw = self.redis.get(self._key(reference_id))
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            # Best effort cleanup if data is corrupted
            self.redis.delete(self._key(reference_id))
            return None

    def record_failed_attempt(self, reference_id: str, max_attempts: int) -> int:
        """
        Bumps the attempt counter, keeping the remaining TTL.
        Returns attempts left; the reference is dropped when none remain.
        """
        key = self._key(reference_id)
        data = self.get(reference_id)
        if data is None:
            return 0
        data["attempts"] = int(data.get("attempts", 0)) + 1
        remaining = max_attempts - data["attempts"]
        if remaining <= 0:
            self.redis.delete(key)
            return 0
        ttl = self.redis.ttl(key)
        if ttl and ttl > 0:
            self.redis.setex(key, ttl, json.dumps(data))
        return remaining

    def delete(self, reference_id: str) -> None:
        self.redis.delete(self._key(reference_id))
