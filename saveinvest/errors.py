"""Domain error taxonomy shared by every app, plus the DRF handler that maps it to HTTP."""

from __future__ import annotations

import logging
from typing import List, Optional

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class SaveInvestError(Exception):
    """Base class for errors surfaced to callers."""

    code = "error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, next_steps: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.next_steps = list(next_steps or [])

    def as_dict(self) -> dict:
        body = {"error": self.code, "message": self.message}
        if self.next_steps:
            body["next_steps"] = self.next_steps
        return body


class ValidationError(SaveInvestError):
    """Malformed input, rejected before any state mutation."""

    code = "validation_error"
    http_status = status.HTTP_400_BAD_REQUEST


class NotFoundError(SaveInvestError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class ConflictError(SaveInvestError):
    """Resource already bound elsewhere (PAN, Aadhaar, bank account)."""

    code = "conflict"
    http_status = status.HTTP_409_CONFLICT


class PrerequisiteError(SaveInvestError):
    """An earlier step is missing; `next_steps` lists what to do, in order."""

    code = "prerequisite_required"
    http_status = status.HTTP_403_FORBIDDEN


class VerificationFailedError(SaveInvestError):
    """The provider answered, and the answer was no."""

    code = "verification_failed"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class InsufficientFundsError(SaveInvestError):
    code = "insufficient_funds"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class UpstreamProviderError(SaveInvestError):
    """Identity or price provider failed or timed out. Safe to retry."""

    code = "upstream_unavailable"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class NavUnavailableError(UpstreamProviderError):
    code = "nav_unavailable"


class DataCorruption(SaveInvestError):
    """A persisted encrypted blob could not be decoded."""

    code = "data_corruption"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR


def api_exception_handler(exc, context):
    if isinstance(exc, SaveInvestError):
        if isinstance(exc, DataCorruption):
            logger.error(f"Data corruption surfaced to API: {exc.message}")
        return Response(exc.as_dict(), status=exc.http_status)
    return exception_handler(exc, context)
