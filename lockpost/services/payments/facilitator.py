"""
x402 facilitator client (httpx sync).

The X-PAYMENT header is a base64-encoded JSON payment payload produced by the
buyer's wallet; we never interpret it beyond decoding, the facilitator does.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
import time
from typing import Any, Protocol

import httpx
import pybreaker

from lockpost.core.config import settings
from lockpost.errors import SettlementFailed, TransientInfrastructureFailure
from lockpost.services.payments.models import X402_VERSION, PaymentRequirements, SettlementReceipt
from lockpost.services.circuit_breaker import get_circuit_breaker
from lockpost.utils.metrics import facilitator_request_duration_seconds, facilitator_requests_total

logger = logging.getLogger(__name__)


class FacilitatorRejected(Exception):
    """4xx from the facilitator: the payment itself is bad, the facilitator is fine."""

    def __init__(self, status_code: int, body: dict[str, Any]) -> None:
        self.status_code = status_code
        self.body = body
        reason = body.get("invalidReason") or body.get("errorReason") or f"HTTP {status_code}"
        super().__init__(reason)


# Плохой платёж покупателя не должен размыкать breaker для всех остальных
BREAKER_EXCLUDE = [FacilitatorRejected]


class PaymentFacilitator(Protocol):
    def build_requirements(
        self,
        amount: str,
        asset: str,
        network: str,
        description: str,
        resource: str,
        mime_type: str,
    ) -> PaymentRequirements: ...

    def verify(self, payment_header: str, requirements: PaymentRequirements) -> bool: ...

    def settle(self, payment_header: str, requirements: PaymentRequirements) -> SettlementReceipt: ...


def decode_payment_header(payment_header: str) -> dict[str, Any] | None:
    """base64(JSON) -> dict. Malformed header -> None."""
    try:
        padded = payment_header + "=" * (-len(payment_header) % 4)
        decoded = base64.b64decode(padded, validate=False)
        payload = json.loads(decoded)
    except (binascii.Error, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


def _json_body(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def encode_receipt_header(receipt: SettlementReceipt) -> str:
    return base64.b64encode(json.dumps(receipt.wire()).encode("utf-8")).decode("ascii")


class FacilitatorClient:
    def __init__(
        self,
        base_url: str | None = None,
        http_client: httpx.Client | None = None,
        breaker: pybreaker.CircuitBreaker | None = None,
    ) -> None:
        self._base_url = (base_url or settings.facilitator_url).rstrip("/")
        self._client = http_client
        self._breaker = breaker or get_circuit_breaker("facilitator", exclude=BREAKER_EXCLUDE)

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=settings.facilitator_timeout)
        return self._client

    def build_requirements(
        self,
        amount: str,
        asset: str,
        network: str,
        description: str,
        resource: str,
        mime_type: str,
    ) -> PaymentRequirements:
        return PaymentRequirements(
            scheme="exact",
            network=network,
            max_amount_required=amount,
            resource=resource,
            description=description,
            mime_type=mime_type,
            pay_to=settings.treasury_wallet_address,
            max_timeout_seconds=settings.payment_max_timeout_seconds,
            asset=asset,
            extra={"decimals": settings.usdc_decimals},
        )

    def _send(self, url: str, body: dict[str, Any]) -> dict[str, Any]:
        resp = self.client.post(url, json=body)
        if 400 <= resp.status_code < 500:
            raise FacilitatorRejected(resp.status_code, _json_body(resp))
        resp.raise_for_status()
        return resp.json()

    def _post(self, method: str, body: dict[str, Any]) -> dict[str, Any]:
        start = time.time()
        try:
            data = self._breaker.call(self._send, f"{self._base_url}/{method}", body)
        except FacilitatorRejected as e:
            facilitator_requests_total.labels(method=method, status="rejected").inc()
            facilitator_request_duration_seconds.labels(method=method).observe(time.time() - start)
            logger.info(
                "facilitator_request_rejected",
                extra={"method": method, "status_code": e.status_code, "error": str(e)},
            )
            raise
        except (pybreaker.CircuitBreakerError, httpx.HTTPError, ValueError) as e:
            facilitator_requests_total.labels(method=method, status="error").inc()
            facilitator_request_duration_seconds.labels(method=method).observe(time.time() - start)
            logger.warning("facilitator_request_failed", extra={"method": method, "error": str(e)})
            raise TransientInfrastructureFailure(f"facilitator {method} failed: {e}") from e
        facilitator_requests_total.labels(method=method, status="success").inc()
        facilitator_request_duration_seconds.labels(method=method).observe(time.time() - start)
        return data

    def verify(self, payment_header: str, requirements: PaymentRequirements) -> bool:
        payload = decode_payment_header(payment_header)
        if payload is None:
            logger.info("payment_header_malformed")
            return False
        try:
            data = self._post(
                "verify",
                {
                    "x402Version": X402_VERSION,
                    "paymentPayload": payload,
                    "paymentRequirements": requirements.wire(),
                },
            )
        except FacilitatorRejected as e:
            logger.info("payment_verify_rejected", extra={"reason": str(e), "status_code": e.status_code})
            return False
        if not data.get("isValid"):
            logger.info("payment_verify_rejected", extra={"reason": data.get("invalidReason")})
            return False
        return True

    def settle(self, payment_header: str, requirements: PaymentRequirements) -> SettlementReceipt:
        payload = decode_payment_header(payment_header)
        if payload is None:
            raise SettlementFailed("malformed payment header")
        try:
            data = self._post(
                "settle",
                {
                    "x402Version": X402_VERSION,
                    "paymentPayload": payload,
                    "paymentRequirements": requirements.wire(),
                },
            )
        except (FacilitatorRejected, TransientInfrastructureFailure) as e:
            raise SettlementFailed(str(e)) from e
        receipt = SettlementReceipt.model_validate(data)
        if not receipt.success:
            raise SettlementFailed(receipt.error_reason or "settlement rejected")
        return receipt

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
