"""
ContentStore: encrypted persistence of creator content.

Idempotency key is (source_platform, source_message_id): a replayed or concurrent
duplicate submission gets the original resource back, never a second row or proof.
The UNIQUE constraint is the arbiter; the pre-check only saves an encryption.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lockpost.core.config import settings
from lockpost.errors import ContentCorrupted
from lockpost.models.resource import STATUS_DRAFT, Resource
from lockpost.services.content.crypto import (
    EncryptedPayload,
    decrypt_content,
    encrypt_content,
    hash_content,
    seal_token,
    unseal_token,
    verify_content_hash,
)
from lockpost.services.proofs import service as proofs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredContent:
    resource_id: str
    proof_token: str | None
    is_new: bool


class ContentStore:
    def __init__(self, db: Session):
        self.db = db

    def get_by_source(self, source_platform: str, source_message_id: str) -> Resource | None:
        return (
            self.db.query(Resource)
            .filter(
                Resource.source_platform == source_platform,
                Resource.source_message_id == source_message_id,
            )
            .one_or_none()
        )

    def _replay(self, existing: Resource) -> StoredContent:
        logger.info(
            "content_duplicate_message",
            extra={
                "resource_id": existing.id,
                "source_platform": existing.source_platform,
                "source_message_id": existing.source_message_id,
            },
        )
        token = unseal_token(existing.proof_token_sealed) if existing.proof_token_sealed else None
        return StoredContent(resource_id=existing.id, proof_token=token, is_new=False)

    def store(
        self,
        owner_id: str,
        handle: str,
        plaintext: str | bytes,
        source_platform: str,
        source_message_id: str,
        content_type: str | None = None,
        price_minor_units: int | None = None,
    ) -> StoredContent:
        existing = self.get_by_source(source_platform, source_message_id)
        if existing:
            return self._replay(existing)

        raw = plaintext.encode("utf-8") if isinstance(plaintext, str) else plaintext
        encrypted = encrypt_content(raw)
        proof = proofs.issue()

        resource = Resource(
            owner_id=owner_id,
            owner_handle=handle,
            content_ciphertext=encrypted.ciphertext,
            content_iv=encrypted.iv,
            content_auth_tag=encrypted.auth_tag,
            content_hash=hash_content(raw),
            content_type=content_type or "text/plain",
            proof_hash=proof.hash,
            proof_salt=proof.salt,
            proof_token_sealed=seal_token(proof.token),
            proof_issued_at=datetime.now(timezone.utc),
            status=STATUS_DRAFT,
            price_minor_units=price_minor_units or settings.default_price_minor_units,
            currency=settings.default_currency,
            chain=settings.default_chain,
            source_platform=source_platform,
            source_message_id=source_message_id,
        )
        try:
            self.db.add(resource)
            self.db.commit()
        except IntegrityError:
            # Concurrent duplicate won the insert
            self.db.rollback()
            winner = self.get_by_source(source_platform, source_message_id)
            if winner is None:
                raise
            return self._replay(winner)

        logger.info(
            "content_stored",
            extra={"resource_id": resource.id, "owner_id": owner_id, "source_platform": source_platform},
        )
        return StoredContent(resource_id=resource.id, proof_token=proof.token, is_new=True)

    def get(self, resource_id: str) -> Resource | None:
        return self.db.query(Resource).filter(Resource.id == resource_id).one_or_none()

    def get_published(self, resource_id: str) -> Resource | None:
        resource = self.get(resource_id)
        if resource is None or not resource.is_published:
            return None
        return resource

    def decrypt_resource(self, resource: Resource) -> bytes:
        """Decrypt and check integrity against content_hash. Raises ContentCorrupted."""
        content = decrypt_content(
            EncryptedPayload(
                ciphertext=resource.content_ciphertext,
                iv=resource.content_iv,
                auth_tag=resource.content_auth_tag,
            )
        )
        if not verify_content_hash(content, resource.content_hash):
            logger.error("content_integrity_failed", extra={"resource_id": resource.id})
            raise ContentCorrupted(f"content hash mismatch for {resource.id}")
        return content
