"""
DTO paywall: DeliveryResult (ответ после оплаченной выдачи) и ResourcePreview (публичные поля).
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from lockpost.services.payments.models import SettlementReceipt


# ----- Результат оплаченной выдачи -----


class DeliveryMetadata(BaseModel):
    resource_id: str
    creator: str
    creator_handle: str
    content_type: str
    purchase_id: str
    purchased_at: datetime


class DeliveryResult(BaseModel):
    """Plaintext + metadata. receipt goes into the X-PAYMENT-RESPONSE header."""

    content: str = Field(..., description="UTF-8 text for text/* content, base64 otherwise")
    encoding: str = Field("utf-8", description="utf-8 | base64")
    metadata: DeliveryMetadata
    receipt: SettlementReceipt

    model_config = {"frozen": True}


# ----- Публичное превью (без шифротекста, proof и журнала покупок) -----


class PreviewOwner(BaseModel):
    id: str
    handle: str


class PreviewPrice(BaseModel):
    amount: str
    currency: str


class ResourcePreview(BaseModel):
    id: str
    owner: PreviewOwner
    content_type: str
    price: PreviewPrice
    chain: str
    network: str
    social_post_id: str | None = None
    social_post_url: str | None = None
    status: str
