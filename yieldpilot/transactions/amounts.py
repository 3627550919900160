"""Fixed-point amount helpers for on-chain calls.

All on-chain amounts are integers scaled by ``10**decimals``. Slippage bounds
are computed on those integers so repeated computation never drifts.
"""
from __future__ import annotations

import time
from decimal import ROUND_DOWN, ROUND_FLOOR, Decimal, InvalidOperation

DEFAULT_DECIMALS = 18
DEFAULT_SLIPPAGE_PERCENT = 0.5
DEFAULT_DEADLINE_SECONDS = 1200
BPS_DENOMINATOR = 10_000


def parse_decimal(amount: str) -> Decimal | None:
    """Parse a user-entered decimal string. Returns None if it is not a finite number."""
    if amount is None:
        return None
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite():
        return None
    return value


def parse_positive_amount(amount: str) -> Decimal | None:
    value = parse_decimal(amount)
    if value is None or value <= 0:
        return None
    return value


def parse_units(amount: str | Decimal, decimals: int = DEFAULT_DECIMALS) -> int:
    """``"1.5"`` → ``1500000000000000000`` for 18 decimals. Excess precision is truncated."""
    value = amount if isinstance(amount, Decimal) else parse_decimal(amount)
    if value is None:
        raise ValueError(f"Not a decimal amount: {amount!r}")
    scaled = value.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN)
    return int(scaled)


def format_units(value: int, decimals: int = DEFAULT_DECIMALS) -> str:
    text = format(Decimal(value).scaleb(-decimals).normalize(), "f")
    return text


def slippage_multiplier(slippage_percent: float | Decimal) -> int:
    """``floor((100 - slippage) * 100)``; 0.5% → 9950."""
    slippage = Decimal(str(slippage_percent))
    if slippage < 0 or slippage >= 100:
        raise ValueError(f"Slippage must be in [0, 100): {slippage_percent}")
    return int(((Decimal(100) - slippage) * 100).to_integral_value(rounding=ROUND_FLOOR))


def min_amount(
    amount_desired: int,
    slippage_percent: float | Decimal = DEFAULT_SLIPPAGE_PERCENT,
) -> int:
    """Lowest acceptable amount after slippage, in the same fixed-point units."""
    return amount_desired * slippage_multiplier(slippage_percent) // BPS_DENOMINATOR


def deadline(now: float | None = None, seconds: int = DEFAULT_DEADLINE_SECONDS) -> int:
    """Unix timestamp after which the router rejects the call."""
    current = time.time() if now is None else now
    return int(current) + seconds


def estimated_annual_return(amount: str, apy: float) -> Decimal:
    """Simple (non-compounded) yearly return on ``amount`` at ``apy`` percent."""
    value = parse_decimal(amount) or Decimal(0)
    return (value * Decimal(str(apy)) / 100).quantize(Decimal("0.01"))
