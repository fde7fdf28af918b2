"""
Celery task: ingest creator content (queue ingestion).
store -> (new) DM с resource id + proof | (duplicate) ничего не планируем,
кроме повтора этой же задачи, пока proof не использован: DM мог не уйти в очередь.
"""
import logging

from sqlalchemy.orm import Session

from lockpost.core.config import settings
from lockpost.db.session import SessionLocal
from lockpost.services.content.service import ContentStore, StoredContent
from lockpost.utils.metrics import ingestions_total
from lockpost.workers.policy import INGESTION_POLICY, policy_task, submit
from lockpost.workers.tasks.replies import send_direct_message

logger = logging.getLogger(__name__)


def format_ingestion_reply(resource_id: str, proof_token: str) -> str:
    return (
        "✅ Content received and encrypted!\n\n"
        f"📝 Resource ID: {resource_id}\n"
        f"🔐 Proof: {proof_token}\n\n"
        "To publish and monetize your content, tweet:\n\n"
        f"@{settings.x_bot_username} lock:0.2 id:{resource_id} proof:{proof_token}\n\n"
        "(You can customize the price, e.g., lock:1.5 for $1.50)"
    )


def create_resource(
    db: Session,
    owner_id: str,
    handle: str,
    content: str,
    source_platform: str,
    source_message_id: str,
    content_type: str | None = None,
    price_minor_units: int | None = None,
) -> StoredContent:
    """Ingestion use-case shared by the worker and the synchronous HTTP entrypoint."""
    stored = ContentStore(db).store(
        owner_id=owner_id,
        handle=handle,
        plaintext=content,
        source_platform=source_platform,
        source_message_id=source_message_id,
        content_type=content_type,
        price_minor_units=price_minor_units,
    )
    ingestions_total.labels(outcome="created" if stored.is_new else "duplicate").inc()
    return stored


def _is_replay(task) -> bool:
    """Retry or broker redelivery of the same job."""
    delivery_info = task.request.delivery_info or {}
    return bool(task.request.retries) or bool(delivery_info.get("redelivered"))


def _send_proof_dm(owner_id: str, stored: StoredContent) -> None:
    submit(
        send_direct_message,
        user_id=owner_id,
        text=format_ingestion_reply(stored.resource_id, stored.proof_token),
        resource_id=stored.resource_id,
    )


@policy_task(INGESTION_POLICY, name="lockpost.workers.tasks.ingestion.ingest_content")
def ingest_content(
    self,
    owner_id: str,
    handle: str,
    content: str,
    source_message_id: str,
    source_platform: str = "x",
    content_type: str | None = None,
    price_minor_units: int | None = None,
) -> dict:
    db = SessionLocal()
    try:
        stored = create_resource(
            db,
            owner_id=owner_id,
            handle=handle,
            content=content,
            source_platform=source_platform,
            source_message_id=source_message_id,
            content_type=content_type,
            price_minor_units=price_minor_units,
        )
    finally:
        db.close()

    if not stored.is_new:
        logger.info(
            "ingestion_duplicate",
            extra={"resource_id": stored.resource_id, "source_message_id": source_message_id, "duplicate": True},
        )
        if stored.proof_token and _is_replay(self):
            _send_proof_dm(owner_id, stored)
            logger.info("ingestion_dm_resent", extra={"resource_id": stored.resource_id, "task_id": self.request.id})
        return {"ok": True, "resource_id": stored.resource_id, "duplicate": True}

    _send_proof_dm(owner_id, stored)
    logger.info(
        "ingestion_completed",
        extra={"resource_id": stored.resource_id, "owner_id": owner_id, "task_id": self.request.id},
    )
    return {"ok": True, "resource_id": stored.resource_id, "duplicate": False}
