"""
Celery task: verify a creator's publication mention (queue verification).

verify (read-only) -> consume (one conditional UPDATE) -> reply.
Rejections are answered and complete; only infrastructure errors are retried.
"""
import logging

from lockpost.db.session import SessionLocal
from lockpost.errors import RejectionReason
from lockpost.paywall.access import format_price, resource_url
from lockpost.services.content.service import ContentStore
from lockpost.services.mentions.parser import price_to_minor_units
from lockpost.services.proofs.service import ProofService
from lockpost.utils.metrics import verifications_total
from lockpost.workers.policy import VERIFICATION_POLICY, policy_task, submit
from lockpost.workers.tasks.replies import send_reply

logger = logging.getLogger(__name__)

REJECTION_REPLIES = {
    RejectionReason.NOT_FOUND: "Invalid resource ID. Please check and try again.",
    RejectionReason.ALREADY_USED: "This content is already published.",
    RejectionReason.WRONG_STATUS: "This content can't be published right now.",
    RejectionReason.INVALID_TOKEN: "Invalid proof. Please check your proof token.",
}


def format_success_reply(payment_link: str, price: str) -> str:
    return (
        f"🔒 Paywalled Content! Pay ${price} USDC (x402 payment) to access:\n\n"
        f"{payment_link}\n\n"
        "- Powered by Subless Network ⚡️"
    )


def format_rejection_reply(reason: RejectionReason) -> str:
    return REJECTION_REPLIES.get(reason, f"Error: {reason.value}")


def post_url(handle: str | None, post_id: str) -> str:
    return f"https://x.com/{handle or 'i'}/status/{post_id}"


def _reject(post_id: str, resource_id: str, reason: RejectionReason) -> dict:
    verifications_total.labels(outcome=reason.value).inc()
    logger.info(
        "verification_rejected",
        extra={"post_id": post_id, "resource_id": resource_id, "reason": reason.value},
    )
    submit(send_reply, post_id=post_id, text=format_rejection_reply(reason), resource_id=resource_id)
    return {"ok": False, "resource_id": resource_id, "reason": reason.value}


def _published_by(resource, post_id: str, reason: RejectionReason | None) -> bool:
    """Proof already consumed by this very post: a replay of our own successful job."""
    return reason == RejectionReason.ALREADY_USED and resource is not None and resource.social_post_id == post_id


@policy_task(VERIFICATION_POLICY, name="lockpost.workers.tasks.verification.verify_mention")
def verify_mention(
    self,
    post_id: str,
    author_id: str,
    resource_id: str,
    proof: str,
    handle: str | None = None,
    raw_text: str | None = None,
    price: str | None = None,
    timestamp: str | None = None,
) -> dict:
    db = SessionLocal()
    try:
        proofs = ProofService(db)
        result = proofs.verify(resource_id, proof)
        if result.valid:
            # "0" и мусор -> цена ресурса не меняется
            price_minor_units = price_to_minor_units(price) or None
            if not proofs.consume(resource_id, post_id, post_url(handle, post_id), price_minor_units):
                # Проиграли гонку: перепроверяем, чтобы ответить реальной причиной
                result = proofs.verify(resource_id, proof)

        resource = ContentStore(db).get(resource_id)
        if not result.valid and not _published_by(resource, post_id, result.reason):
            return _reject(post_id, resource_id, result.reason or RejectionReason.ALREADY_USED)
        effective_price = format_price(resource.price_minor_units)
    finally:
        db.close()

    verifications_total.labels(outcome="published").inc()
    link = resource_url(resource_id)
    submit(send_reply, post_id=post_id, text=format_success_reply(link, effective_price), resource_id=resource_id)
    logger.info("verification_published", extra={"post_id": post_id, "resource_id": resource_id})
    return {"ok": True, "resource_id": resource_id, "payment_link": link}
