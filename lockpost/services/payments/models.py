"""
x402 wire models (camelCase on the wire): payment requirements, settlement receipt, 402 body.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


X402_VERSION = 1


class X402Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def wire(self) -> dict[str, Any]:
        """Serialize exactly as sent to clients / facilitator."""
        return self.model_dump(by_alias=True, exclude_none=True)


class PaymentRequirements(X402Model):
    scheme: str = "exact"
    network: str
    max_amount_required: str = Field(..., description="Amount in asset base units, as decimal string")
    resource: str
    description: str
    mime_type: str
    pay_to: str
    max_timeout_seconds: int
    asset: str
    extra: dict[str, Any] | None = None


class SettlementReceipt(X402Model):
    success: bool
    transaction: str | None = None
    network: str | None = None
    payer: str | None = None
    error_reason: str | None = None


class PaymentRequiredBody(X402Model):
    x402_version: int = X402_VERSION
    error: str
    accepts: list[PaymentRequirements]
