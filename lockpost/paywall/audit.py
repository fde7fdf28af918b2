"""
Аудит покупок: record_purchase вызывается из delivery на каждом переходе покупки.
"""
from __future__ import annotations

import logging
from typing import Literal

logger = logging.getLogger(__name__)

PurchaseEvent = Literal["pending", "settled", "settle_failed", "content_corrupted"]


def record_purchase(
    purchase_id: str,
    resource_id: str,
    event: PurchaseEvent,
    *,
    amount_minor_units: int = 0,
    currency: str | None = None,
    settlement_reference: str | None = None,
    payer: str | None = None,
) -> None:
    """Записать событие покупки для аналитики и ручной сверки с facilitator."""
    log = logger.error if event in ("settle_failed", "content_corrupted") else logger.info
    log(
        f"paywall_purchase_{event}",
        extra={
            "purchase_id": purchase_id,
            "resource_id": resource_id,
            "amount_minor_units": amount_minor_units,
            "currency": currency,
            "settlement_reference": settlement_reference,
            "payer": payer,
        },
    )
