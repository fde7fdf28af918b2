"""
Paywall x402: decision (access) и execution (delivery) разделены.
"""
from lockpost.paywall.access import build_requirements
from lockpost.paywall.audit import record_purchase
from lockpost.paywall.delivery import deliver_content
from lockpost.paywall.models import (
    DeliveryMetadata,
    DeliveryResult,
    PreviewOwner,
    PreviewPrice,
    ResourcePreview,
)

__all__ = [
    "DeliveryMetadata",
    "DeliveryResult",
    "PreviewOwner",
    "PreviewPrice",
    "ResourcePreview",
    "build_requirements",
    "deliver_content",
    "record_purchase",
]
