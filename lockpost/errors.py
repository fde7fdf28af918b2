"""
Error taxonomy shared by services, workers and the HTTP layer.
Workers retry only TransientInfrastructureFailure / EncryptionKeyError and unknown
exceptions; everything else here is a terminal, reported outcome.
"""
from __future__ import annotations

from enum import Enum
from typing import Any


class RejectionReason(str, Enum):
    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"
    WRONG_STATUS = "wrong_status"
    INVALID_TOKEN = "invalid_token"


class LockpostError(Exception):
    """Base class for expected failures."""

    code = "error"


class ResourceNotFound(LockpostError):
    code = "not_found"

    def __init__(self, resource_id: str) -> None:
        super().__init__(f"Resource not found: {resource_id}")
        self.resource_id = resource_id


class PaymentRequired(LockpostError):
    """Not a failure: the x402 handshake asks the client to pay and retry."""

    code = "payment_required"

    def __init__(self, requirements: Any, error: str = "X-PAYMENT header is required") -> None:
        super().__init__(error)
        self.requirements = requirements
        self.error = error


class PaymentInvalid(PaymentRequired):
    code = "payment_invalid"

    def __init__(self, requirements: Any, error: str = "Payment verification failed") -> None:
        super().__init__(requirements, error)


class ContentCorrupted(LockpostError):
    """Decrypted content failed authentication or hash check. Never retried."""

    code = "content_corrupted"


class SettlementFailed(LockpostError):
    code = "settlement_failed"


class EncryptionKeyError(LockpostError):
    code = "encryption_key_error"


class TransientInfrastructureFailure(LockpostError):
    code = "transient_failure"
