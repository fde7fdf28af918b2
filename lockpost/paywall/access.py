"""
Decision только: из цены ресурса собрать x402 PaymentRequirements.
Чистые функции, без I/O (facilitator только конструирует модель).
"""
from __future__ import annotations

from decimal import Decimal

from lockpost.models.resource import Resource
from lockpost.paywall.config import (
    get_asset_address,
    get_asset_decimals,
    get_payment_network,
    get_public_base_url,
)
from lockpost.services.payments.facilitator import PaymentFacilitator
from lockpost.services.payments.models import PaymentRequirements


def minor_units_to_base_units(minor_units: int, decimals: int) -> str:
    """Cents -> asset base units (USDC: 6 decimals, 20 cents -> '200000')."""
    if decimals >= 2:
        return str(minor_units * 10 ** (decimals - 2))
    return str(minor_units // 10 ** (2 - decimals))


def format_price(minor_units: int) -> str:
    """20 -> '0.20'."""
    return str((Decimal(minor_units) / 100).quantize(Decimal("0.01")))


def resource_url(resource_id: str) -> str:
    return f"{get_public_base_url()}/resources/{resource_id}"


def build_requirements(resource: Resource, facilitator: PaymentFacilitator) -> PaymentRequirements:
    return facilitator.build_requirements(
        amount=minor_units_to_base_units(resource.price_minor_units, get_asset_decimals()),
        asset=get_asset_address(),
        network=get_payment_network(),
        description=f"Content by @{resource.owner_handle}",
        resource=resource_url(resource.id),
        mime_type=resource.content_type or "application/octet-stream",
    )
