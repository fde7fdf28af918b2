"""
Invisible per-purchase watermark for text content (zero-width characters).
"""
from __future__ import annotations

import hashlib
import hmac

from lockpost.paywall.config import get_watermark_secret

ZERO = "​"    # zero-width space -> bit 0
ONE = "‌"     # zero-width non-joiner -> bit 1
MARKER = "‍"  # zero-width joiner, frames the payload


def generate_watermark_id(resource_id: str, purchase_id: str) -> str:
    data = f"{resource_id}:{purchase_id}".encode("utf-8")
    digest = hmac.new(get_watermark_secret().encode("utf-8"), data, hashlib.sha256).hexdigest()
    return f"wm-{digest[:16]}"


def embed_text_watermark(content: str, watermark_id: str) -> str:
    """Insert the encoded id at 25% of the text."""
    bits = "".join(f"{byte:08b}" for byte in watermark_id.encode("utf-8"))
    encoded = MARKER + "".join(ONE if b == "1" else ZERO for b in bits) + MARKER
    pos = len(content) // 4
    return content[:pos] + encoded + content[pos:]


def extract_text_watermark(content: str) -> str | None:
    start = content.find(MARKER)
    if start < 0:
        return None
    end = content.find(MARKER, start + 1)
    if end < 0:
        return None
    bits = "".join("1" if ch == ONE else "0" for ch in content[start + 1:end])
    if not bits or len(bits) % 8:
        return None
    raw = bytes(int(bits[i:i + 8], 2) for i in range(0, len(bits), 8))
    return raw.decode("utf-8", errors="replace")


def strip_text_watermark(content: str) -> str:
    return content.translate({ord(ZERO): None, ord(ONE): None, ord(MARKER): None})
