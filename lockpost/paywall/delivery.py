"""
Execution: deliver_content(db, resource_id, payment_header, facilitator) -> DeliveryResult.

Порядок: requirements -> verify -> pending purchase + счётчики -> decrypt/integrity -> settle.
Buyer не списывается, если расшифровка не удалась: settle идёт только после успешной проверки.
"""
from __future__ import annotations

import base64
import logging

from sqlalchemy.orm import Session

from lockpost.errors import (
    ContentCorrupted,
    PaymentInvalid,
    PaymentRequired,
    ResourceNotFound,
    SettlementFailed,
)
from lockpost.paywall.access import build_requirements
from lockpost.paywall.audit import record_purchase
from lockpost.paywall.config import get_payment_network
from lockpost.paywall.models import DeliveryMetadata, DeliveryResult
from lockpost.paywall.watermark import embed_text_watermark, generate_watermark_id
from lockpost.services.content.service import ContentStore
from lockpost.services.payments.facilitator import PaymentFacilitator
from lockpost.services.purchases.service import PurchaseService
from lockpost.utils.metrics import paywall_requests_total

logger = logging.getLogger(__name__)


def deliver_content(
    db: Session,
    resource_id: str,
    payment_header: str | None,
    facilitator: PaymentFacilitator,
) -> DeliveryResult:
    """
    Raises ResourceNotFound (нет ресурса или ещё draft), PaymentRequired / PaymentInvalid
    (клиент должен заплатить), ContentCorrupted, SettlementFailed.
    """
    store = ContentStore(db)
    resource = store.get_published(resource_id)
    if resource is None:
        paywall_requests_total.labels(outcome="not_found").inc()
        raise ResourceNotFound(resource_id)

    requirements = build_requirements(resource, facilitator)
    if not payment_header:
        paywall_requests_total.labels(outcome="payment_required").inc()
        raise PaymentRequired(requirements)

    if not facilitator.verify(payment_header, requirements):
        paywall_requests_total.labels(outcome="payment_invalid").inc()
        raise PaymentInvalid(requirements)

    purchases = PurchaseService(db)
    purchase = purchases.record_pending(resource, get_payment_network())
    record_purchase(
        purchase.id,
        resource.id,
        "pending",
        amount_minor_units=purchase.amount_minor_units,
        currency=purchase.currency,
    )

    try:
        raw = store.decrypt_resource(resource)
    except ContentCorrupted:
        paywall_requests_total.labels(outcome="content_corrupted").inc()
        record_purchase(purchase.id, resource.id, "content_corrupted")
        raise

    try:
        receipt = facilitator.settle(payment_header, requirements)
    except SettlementFailed as e:
        purchases.mark_settle_failed(purchase)
        paywall_requests_total.labels(outcome="settlement_failed").inc()
        logger.error(
            "paywall_settlement_failed",
            extra={"resource_id": resource.id, "purchase_id": purchase.id, "error": str(e)},
        )
        record_purchase(purchase.id, resource.id, "settle_failed")
        raise

    purchases.mark_settled(purchase, receipt)
    record_purchase(
        purchase.id,
        resource.id,
        "settled",
        amount_minor_units=purchase.amount_minor_units,
        currency=purchase.currency,
        settlement_reference=receipt.transaction,
        payer=receipt.payer,
    )
    paywall_requests_total.labels(outcome="delivered").inc()

    content, encoding = _encode_content(raw, resource.content_type)
    if resource.watermark_enabled and encoding == "utf-8":
        content = embed_text_watermark(content, generate_watermark_id(resource.id, purchase.id))

    return DeliveryResult(
        content=content,
        encoding=encoding,
        metadata=DeliveryMetadata(
            resource_id=resource.id,
            creator=resource.owner_id,
            creator_handle=resource.owner_handle,
            content_type=resource.content_type,
            purchase_id=purchase.id,
            purchased_at=purchase.settled_at,
        ),
        receipt=receipt,
    )


def _encode_content(raw: bytes, content_type: str | None) -> tuple[str, str]:
    if (content_type or "text/plain").startswith("text/"):
        try:
            return raw.decode("utf-8"), "utf-8"
        except UnicodeDecodeError:
            pass
    return base64.b64encode(raw).decode("ascii"), "base64"
