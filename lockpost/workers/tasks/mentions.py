"""
Celery beat task: poll bot mentions and enqueue actionable ones for verification.
"""
import logging

import redis

from lockpost.core.config import settings
from lockpost.services.dedup import DedupTracker
from lockpost.services.mentions.parser import parse_mention
from lockpost.services.social.client import XClient
from lockpost.services.social.errors import SocialAPIError
from lockpost.workers.policy import MAINTENANCE_POLICY, policy_task, submit
from lockpost.workers.tasks.verification import verify_mention

logger = logging.getLogger(__name__)

SINCE_ID_KEY = "lockpost:mentions:since_id"


def _redis() -> redis.Redis:
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)


def _read_since_id(client: redis.Redis) -> str | None:
    try:
        return client.get(SINCE_ID_KEY)
    except redis.RedisError as e:
        logger.warning("mention_cursor_read_failed", extra={"error": str(e)})
        return None


def _write_since_id(client: redis.Redis, since_id: str) -> None:
    try:
        client.set(SINCE_ID_KEY, since_id)
    except redis.RedisError as e:
        logger.warning("mention_cursor_write_failed", extra={"error": str(e)})


@policy_task(MAINTENANCE_POLICY, name="lockpost.workers.tasks.mentions.poll_mentions")
def poll_mentions(self) -> dict:
    """Одна итерация поллера: fetch -> dedup -> parse -> enqueue -> mark handled."""
    r = _redis()
    tracker = DedupTracker(client=r)
    client = XClient()
    try:
        batch = client.fetch_mentions(since_id=_read_since_id(r))
    except SocialAPIError as e:
        # Следующий тик beat повторит
        logger.warning("mention_poll_failed", extra={"error": str(e), "status_code": e.status_code})
        return {"ok": False, "error": "fetch_failed"}
    finally:
        client.close()

    enqueued = skipped = 0
    for mention in batch.mentions:
        if tracker.is_handled(mention.post_id):
            skipped += 1
            continue
        params = parse_mention(mention.text)
        if params.is_actionable:
            submit(
                verify_mention,
                post_id=mention.post_id,
                author_id=mention.author_id,
                handle=mention.handle,
                raw_text=mention.text,
                resource_id=params.resource_id,
                proof=params.proof,
                price=params.price,
                timestamp=mention.created_at,
            )
            enqueued += 1
        else:
            logger.info("mention_not_actionable", extra={"post_id": mention.post_id})
        tracker.mark_handled(mention.post_id)

    if batch.newest_id:
        _write_since_id(r, batch.newest_id)
    logger.info("mention_poll_done", extra={"job_id": self.request.id})
    return {"ok": True, "fetched": len(batch.mentions), "enqueued": enqueued, "skipped": skipped}
