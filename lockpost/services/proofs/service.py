"""
Single-use publication proofs.

issue() creates the (token, salt, hash) triple; only salt + hash are persisted.
verify() is read-only so workers can retry it freely; consume() is the one
conditional write that flips a resource to published.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from lockpost.core.config import settings
from lockpost.errors import RejectionReason
from lockpost.models.resource import STATUS_DRAFT, STATUS_PUBLISHED, Resource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProofData:
    token: str
    hash: str
    salt: str


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    reason: RejectionReason | None = None
    resource_id: str | None = None
    owner_id: str | None = None


def generate_token(num_bytes: int | None = None) -> str:
    """Random hex token; the dash grouping is cosmetic."""
    raw = secrets.token_hex(num_bytes or settings.proof_token_bytes)
    return "-".join(raw[i:i + 8] for i in range(0, len(raw), 8))


def hash_proof(token: str, salt: str) -> str:
    return hmac.new(salt.encode("utf-8"), token.encode("utf-8"), hashlib.sha256).hexdigest()


def check_proof(token: str, salt: str, expected_hash: str) -> bool:
    return hmac.compare_digest(hash_proof(token, salt), expected_hash)


def issue() -> ProofData:
    token = generate_token()
    salt = secrets.token_hex(16)
    return ProofData(token=token, hash=hash_proof(token, salt), salt=salt)


class ProofService:
    def __init__(self, db: Session):
        self.db = db

    def verify(self, resource_id: str, token: str) -> VerificationResult:
        resource = self.db.query(Resource).filter(Resource.id == resource_id).one_or_none()
        if resource is None:
            return VerificationResult(valid=False, reason=RejectionReason.NOT_FOUND)
        if resource.proof_used_at is not None:
            return VerificationResult(valid=False, reason=RejectionReason.ALREADY_USED, resource_id=resource.id)
        if resource.status != STATUS_DRAFT:
            return VerificationResult(valid=False, reason=RejectionReason.WRONG_STATUS, resource_id=resource.id)
        if not check_proof(token, resource.proof_salt, resource.proof_hash):
            return VerificationResult(valid=False, reason=RejectionReason.INVALID_TOKEN, resource_id=resource.id)
        return VerificationResult(valid=True, resource_id=resource.id, owner_id=resource.owner_id)

    def consume(
        self,
        resource_id: str,
        post_id: str,
        post_url: str,
        price_minor_units: int | None = None,
    ) -> bool:
        """
        Compare-and-set draft -> published. Returns False when another worker
        already consumed the proof (rowcount 0); the caller re-verifies to report why.
        """
        now = datetime.now(timezone.utc)
        values = {
            "proof_used_at": now,
            "status": STATUS_PUBLISHED,
            "social_post_id": post_id,
            "social_post_url": post_url,
            "social_verified_at": now,
            "proof_token_sealed": None,
            "updated_at": now,
        }
        if price_minor_units is not None:
            values["price_minor_units"] = price_minor_units

        result = self.db.execute(
            update(Resource)
            .where(
                Resource.id == resource_id,
                Resource.proof_used_at.is_(None),
                Resource.status == STATUS_DRAFT,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        won = result.rowcount == 1
        if won:
            logger.info("proof_consumed", extra={"resource_id": resource_id, "post_id": post_id})
        else:
            logger.warning("proof_consume_lost_race", extra={"resource_id": resource_id, "post_id": post_id})
        return won
