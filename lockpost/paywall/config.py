"""
Paywall config: типизированная обёртка над lockpost.core.config для x402 и watermark.
"""
from __future__ import annotations

from lockpost.core.config import settings


def get_payment_network() -> str:
    return settings.payment_network


def get_asset_address() -> str:
    return settings.usdc_mint_address


def get_asset_decimals() -> int:
    return settings.usdc_decimals


def get_public_base_url() -> str:
    return settings.public_base_url.rstrip("/")


def get_watermark_secret() -> str:
    return settings.watermark_secret
