"""Risk scorer — classifies a pool by headline APY and backing liquidity.

Rules, evaluated in order (first match wins):

    apy > 100                          → high
    apy > 50 and tvl < $5M             → high
    apy > 40                           → medium
    apy > 30 and tvl < $10M            → medium
    otherwise                          → low

The order matters for edge values; do not collapse the thresholds.
"""
from __future__ import annotations

from enum import StrEnum


class RiskTier(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def score(apy: float, tvl_usd: float) -> RiskTier:
    """Return the risk tier for a pool. Pure and total for non-negative inputs."""
    if apy > 100:
        return RiskTier.HIGH
    if apy > 50 and tvl_usd < 5_000_000:
        return RiskTier.HIGH
    if apy > 40:
        return RiskTier.MEDIUM
    if apy > 30 and tvl_usd < 10_000_000:
        return RiskTier.MEDIUM
    return RiskTier.LOW


def format_tvl(tvl_usd: float) -> str:
    """Render a USD amount as ``$X.XXB`` / ``$X.XXM`` / ``$X.XXK`` / ``$X.XX``."""
    if tvl_usd >= 1_000_000_000:
        return f"${tvl_usd / 1_000_000_000:.2f}B"
    if tvl_usd >= 1_000_000:
        return f"${tvl_usd / 1_000_000:.2f}M"
    if tvl_usd >= 1_000:
        return f"${tvl_usd / 1_000:.2f}K"
    return f"${tvl_usd:.2f}"
