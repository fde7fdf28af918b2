from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB

from lockpost.db.base import Base


class DeadLetterJob(Base):
    """Job that exhausted its retry budget; parked for operator review."""

    __tablename__ = "dead_letter_jobs"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    task_name = Column(String, nullable=False, index=True)
    task_id = Column(String, nullable=True)
    queue = Column(String, nullable=True)
    payload = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict)
    error = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
