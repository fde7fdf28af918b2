"""
Resource: a unit of monetized content.
Ciphertext and proof commitment are written once at ingestion; status moves
draft -> published exactly once, together with proof_used_at.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint

from lockpost.db.base import Base

STATUS_DRAFT = "draft"
STATUS_PUBLISHED = "published"


class Resource(Base):
    __tablename__ = "resources"
    __table_args__ = (
        UniqueConstraint("source_platform", "source_message_id", name="uq_resources_source_message"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    owner_id = Column(String, nullable=False, index=True)
    owner_handle = Column(String, nullable=False)

    content_ciphertext = Column(Text, nullable=False)   # base64, без GCM tag
    content_iv = Column(String, nullable=False)         # hex, 12 bytes
    content_auth_tag = Column(String, nullable=False)   # hex, 16 bytes
    content_hash = Column(String, nullable=False)       # sha256(plaintext) hex
    content_type = Column(String, nullable=False, default="text/plain")

    proof_hash = Column(String, nullable=False)
    proof_salt = Column(String, nullable=False)
    # Sealed copy of the issued token for idempotent replays; cleared on consumption
    proof_token_sealed = Column(String, nullable=True)
    proof_issued_at = Column(DateTime(timezone=True), nullable=True)
    proof_used_at = Column(DateTime(timezone=True), nullable=True)

    status = Column(String, nullable=False, default=STATUS_DRAFT, index=True)

    price_minor_units = Column(Integer, nullable=False, default=20)
    currency = Column(String, nullable=False, default="USDC")
    chain = Column(String, nullable=False, default="solana")

    social_post_id = Column(String, nullable=True)
    social_post_url = Column(String, nullable=True)
    social_verified_at = Column(DateTime(timezone=True), nullable=True)

    source_platform = Column(String, nullable=False)
    source_message_id = Column(String, nullable=False)

    watermark_enabled = Column(Boolean, nullable=False, default=False)

    total_purchases = Column(Integer, nullable=False, default=0)
    total_revenue_minor_units = Column(Integer, nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_published(self) -> bool:
        return self.status == STATUS_PUBLISHED
