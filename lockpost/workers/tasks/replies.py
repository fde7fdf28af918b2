"""
Celery tasks: outbound social replies (queue replies, concurrency 1, rate-limited).

Permanent failures (deleted post, blocked bot, DMs closed) complete with ok=False;
rate-limit and transient failures propagate into the retry policy.
"""
import logging

from lockpost.services.social.client import XClient
from lockpost.services.social.errors import PermanentSocialError, SocialAPIError
from lockpost.utils.metrics import replies_total
from lockpost.workers.policy import DM_POLICY, REPLY_POLICY, policy_task

logger = logging.getLogger(__name__)


@policy_task(REPLY_POLICY, name="lockpost.workers.tasks.replies.send_reply")
def send_reply(self, post_id: str, text: str, resource_id: str | None = None) -> dict:
    """Reply to a public post (verification outcome)."""
    client = XClient()
    try:
        reply_id = client.post_reply(post_id, text)
    except PermanentSocialError as e:
        replies_total.labels(kind="reply", outcome="permanent_failure").inc()
        logger.warning(
            "reply_permanent_failure",
            extra={"post_id": post_id, "resource_id": resource_id, "status_code": e.status_code, "error": str(e)},
        )
        return {"ok": False, "error": "post_inaccessible", "post_id": post_id}
    except SocialAPIError:
        replies_total.labels(kind="reply", outcome="retry").inc()
        raise
    finally:
        client.close()

    replies_total.labels(kind="reply", outcome="sent").inc()
    logger.info("reply_sent", extra={"post_id": post_id, "resource_id": resource_id})
    return {"ok": True, "reply_id": reply_id, "post_id": post_id}


@policy_task(DM_POLICY, name="lockpost.workers.tasks.replies.send_direct_message")
def send_direct_message(self, user_id: str, text: str, resource_id: str | None = None) -> dict:
    """Private message to the creator (ingestion outcome)."""
    client = XClient()
    try:
        event_id = client.send_direct_message(user_id, text)
    except PermanentSocialError as e:
        replies_total.labels(kind="dm", outcome="permanent_failure").inc()
        logger.warning(
            "dm_permanent_failure",
            extra={"owner_id": user_id, "resource_id": resource_id, "status_code": e.status_code, "error": str(e)},
        )
        return {"ok": False, "error": "dm_rejected", "user_id": user_id}
    except SocialAPIError:
        replies_total.labels(kind="dm", outcome="retry").inc()
        raise
    finally:
        client.close()

    replies_total.labels(kind="dm", outcome="sent").inc()
    logger.info("dm_sent", extra={"owner_id": user_id, "resource_id": resource_id})
    return {"ok": True, "event_id": event_id, "user_id": user_id}
