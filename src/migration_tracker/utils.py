"""Small helpers shared by the engine: ids, token amounts, explorer links."""

from __future__ import annotations

import math
import uuid
from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Literal

from migration_tracker.core.settings import settings

# PENGU is bridged to a 9-decimal SPL token; everything else keeps ERC20's 18.
PENGU_TOKEN_ADDRESS = "0x4e0dEBF0c8795A7861A64Df7F136f989921d0247"
DEFAULT_TOKEN_DECIMALS = 18

_TOKEN_DECIMALS = {
    PENGU_TOKEN_ADDRESS.lower(): 9,
}


def generate_migration_id() -> str:
    """Return a fresh correlation id for a submission."""
    return str(uuid.uuid4())


def format_token_amount(amount: str) -> str:
    """Normalise a user-entered amount into the whole-unit string the backend expects.

    Fractions are floored; anything unparseable or non-positive becomes ``"0"``.
    """
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        return "0"
    if not value.is_finite() or value <= 0:
        return "0"
    try:
        return str(value.quantize(Decimal(1), rounding=ROUND_FLOOR))
    except InvalidOperation:
        return "0"


def get_token_decimals(token_address: str) -> int:
    """Return the destination-chain decimals for *token_address*."""
    return _TOKEN_DECIMALS.get((token_address or "").lower(), DEFAULT_TOKEN_DECIMALS)


def format_human_amount(raw_amount: str | int, decimals: int = DEFAULT_TOKEN_DECIMALS) -> str:
    """Convert raw on-chain units into a human-readable amount.

    Amounts of one token or more keep up to 6 fractional digits, smaller
    amounts up to 8.  Thousands are comma separated.
    """
    try:
        value = Decimal(str(raw_amount)) / (Decimal(10) ** decimals)
        if not value.is_finite():
            return "0"
        places = 6 if value >= 1 else 8
        quantized = value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_FLOOR)
    except InvalidOperation:
        return "0"
    text = f"{quantized:,.{places}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def get_explorer_url(
    hash_or_address: str,
    network: Literal["base", "solana"],
    *,
    kind: Literal["tx", "address"] = "tx",
    base_explorer_url: str | None = None,
    solana_explorer_url: str | None = None,
    solana_network: str | None = None,
) -> str:
    """Build an explorer link for a transaction hash or contract address."""
    if network == "base":
        root = (base_explorer_url or settings.base_explorer_url).rstrip("/")
        return f"{root}/{kind}/{hash_or_address}"
    root = (solana_explorer_url or settings.solana_explorer_url).rstrip("/")
    cluster = solana_network or settings.solana_network
    return f"{root}/{kind}/{hash_or_address}?cluster={cluster}"


def clamp_fraction(value: float) -> float:
    """Clamp *value* into ``[0, 1]``; NaN becomes 0."""
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))
