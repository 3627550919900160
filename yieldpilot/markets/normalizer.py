"""Raw provider record → canonical YieldOpportunity."""
from __future__ import annotations

from yieldpilot.markets.scorer import format_tvl, score
from yieldpilot.markets.sources.base import RawPoolRecord, YieldOpportunity

TOKEN_SEPARATOR = "-"


def split_tokens(symbol: str) -> tuple[str, ...]:
    tokens = tuple(t.strip() for t in symbol.split(TOKEN_SEPARATOR) if t.strip())
    if not tokens:
        raise ValueError(f"Pool symbol has no tokens: {symbol!r}")
    return tokens


def normalize(record: RawPoolRecord) -> YieldOpportunity:
    """Build the canonical opportunity; risk tier and TVL label are recomputed here."""
    if record.apy < 0 or record.tvl_usd < 0:
        raise ValueError(f"Negative apy/tvl for pool {record.pool_id!r}")
    if not record.pool_id:
        raise ValueError("Pool record has no identifier")

    return YieldOpportunity(
        id=record.pool_id,
        protocol=record.protocol,
        pool_label=record.symbol,
        apy=record.apy,
        tvl_usd=record.tvl_usd,
        tvl_display=format_tvl(record.tvl_usd),
        risk_tier=score(record.apy, record.tvl_usd),
        tokens=split_tokens(record.symbol),
        chain=record.chain,
        pool_meta=record.pool_meta,
    )
