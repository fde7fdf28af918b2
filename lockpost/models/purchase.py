"""
Purchase: append-only ledger row written by the paywall delivery path.
Only status (pending -> settled | settle_failed) and settlement fields change after insert.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from lockpost.db.base import Base

PURCHASE_PENDING = "pending"
PURCHASE_SETTLED = "settled"
PURCHASE_SETTLE_FAILED = "settle_failed"


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    resource_id = Column(String, ForeignKey("resources.id"), nullable=False, index=True)
    amount_minor_units = Column(Integer, nullable=False)
    currency = Column(String, nullable=False)
    chain = Column(String, nullable=False)
    network = Column(String, nullable=False)
    payer = Column(String, nullable=True)
    settlement_reference = Column(String, nullable=True)  # tx signature от facilitator
    status = Column(String, nullable=False, default=PURCHASE_PENDING)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    settled_at = Column(DateTime(timezone=True), nullable=True)
