"""
Extraction of unlock parameters from free-form post text.

Expected shape: "@bot lock:0.5 id:<resource_id> proof:<token>". Tags are
independent, case-insensitive, first occurrence wins. Nothing is guessed:
an unmatched or malformed field is simply None.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

_ID_RE = re.compile(r"\bid:([A-Za-z0-9-]+)", re.IGNORECASE)
_PROOF_RE = re.compile(r"\bproof:([A-Za-z0-9_-]+)", re.IGNORECASE)
# "lock:" is the documented form; "price:" is accepted as an alias
_PRICE_TAG_RE = re.compile(r"\b(?:lock|price):(\S*)", re.IGNORECASE)
_DECIMAL_RE = re.compile(r"^(\d+(?:\.\d+)?)")


@dataclass(frozen=True)
class MentionParams:
    resource_id: str | None = None
    proof: str | None = None
    price: str | None = None

    @property
    def is_actionable(self) -> bool:
        return bool(self.resource_id and self.proof)


def _first(pattern: re.Pattern, text: str) -> str | None:
    match = pattern.search(text)
    return match.group(1) if match else None


def _parse_price(text: str) -> str | None:
    raw = _first(_PRICE_TAG_RE, text)
    if not raw:
        return None
    match = _DECIMAL_RE.match(raw)
    return match.group(1) if match else None


def parse_mention(text: str | None) -> MentionParams:
    if not text:
        return MentionParams()
    return MentionParams(
        resource_id=_first(_ID_RE, text),
        proof=_first(_PROOF_RE, text),
        price=_parse_price(text),
    )


def price_to_minor_units(price: str | None) -> int | None:
    """'0.5' -> 50 (cents). Unparseable input -> None."""
    if price is None:
        return None
    try:
        value = Decimal(price)
    except InvalidOperation:
        return None
    if value < 0:
        return None
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
