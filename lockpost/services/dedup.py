"""
Redis-backed "already handled" set for inbound social events, with TTL.
Fails open: if Redis is unavailable an event looks unhandled and may be processed
twice, which downstream idempotency (source message key, conditional proof update) absorbs.
"""
import logging
from datetime import datetime, timezone

import redis

from lockpost.core.config import settings

logger = logging.getLogger(__name__)


class DedupTracker:
    KEY_PREFIX = "lockpost:mentions:handled:"

    def __init__(self, client: redis.Redis | None = None, ttl_days: int | None = None) -> None:
        self.client = client or redis.Redis.from_url(settings.redis_url, decode_responses=True)
        days = ttl_days if ttl_days is not None else settings.dedup_ttl_days
        self.ttl_seconds = days * 24 * 60 * 60

    def _key(self, event_id: str) -> str:
        return f"{self.KEY_PREFIX}{event_id}"

    def is_handled(self, event_id: str) -> bool:
        try:
            return bool(self.client.exists(self._key(event_id)))
        except redis.RedisError as e:
            logger.warning("dedup_read_failed", extra={"post_id": event_id, "error": str(e)})
            return False

    def mark_handled(self, event_id: str) -> None:
        try:
            self.client.set(
                self._key(event_id),
                datetime.now(timezone.utc).isoformat(),
                ex=self.ttl_seconds,
            )
        except redis.RedisError as e:
            logger.warning("dedup_write_failed", extra={"post_id": event_id, "error": str(e)})

    def handled_at(self, event_id: str) -> str | None:
        try:
            return self.client.get(self._key(event_id))
        except redis.RedisError:
            return None
