"""Token price feed — DeFiLlama coins API for BNB Chain tokens.

Used to value wallet holdings so the advisory client can be given a
portfolio snapshot. Public, no auth required.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import httpx

from yieldpilot.advisory.models import PortfolioSnapshot
from yieldpilot.config import settings

logger = logging.getLogger(__name__)

DEFILLAMA_PRICE_URL = "https://coins.llama.fi/prices/current/{coins}"

# symbol → DeFiLlama coin key on BSC
BSC_COIN_KEYS = {
    "BNB": "bsc:0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c",
    "BUSD": "bsc:0xe9e7CEA3DedcA5984780Bafc599bD69ADd087D56",
    "USDT": "bsc:0x55d398326f99059fF775485246999027B3197955",
    "CAKE": "bsc:0x0E09FaBB73Bd3Ade0a17ECC321fD13a19e81cE82",
    "BSW": "bsc:0x965F527D9159dCe6288a2219DB51fc6Eef120dD1",
    "BTCB": "bsc:0x7130d2A12B9BCbFAe4f2634d864A1Ee1Ce3Ead9c",
    "ETH": "bsc:0x2170Ed0880ac9A755fd29B2688956BD959F933F8",
}


@dataclass(frozen=True)
class TokenPrice:
    symbol: str
    price: float
    confidence: float
    last_updated: float


async def get_token_prices(
    symbols: list[str],
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict[str, TokenPrice]:
    """Return prices keyed by upper-case symbol. Unknown symbols are skipped."""
    wanted = {s.upper(): BSC_COIN_KEYS[s.upper()] for s in symbols if s.upper() in BSC_COIN_KEYS}
    if not wanted:
        return {}

    url = DEFILLAMA_PRICE_URL.format(coins=",".join(wanted.values()))
    try:
        async with httpx.AsyncClient(
            timeout=settings.http_timeout_seconds, transport=transport
        ) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            coins = resp.json().get("coins", {})
    except Exception as exc:
        logger.warning("DeFiLlama price fetch failed: %s", exc)
        return {}

    by_key = {key: symbol for symbol, key in wanted.items()}
    now = time.time()
    prices: dict[str, TokenPrice] = {}
    for key, info in coins.items():
        symbol = by_key.get(key)
        if symbol is None or not isinstance(info, dict):
            continue
        try:
            prices[symbol] = TokenPrice(
                symbol=symbol,
                price=float(info["price"]),
                confidence=float(info.get("confidence") or 0),
                last_updated=now,
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("Skipping price for %s: %s", symbol, exc)
    return prices


async def get_token_price(symbol: str, **kwargs) -> float:
    prices = await get_token_prices([symbol], **kwargs)
    info = prices.get(symbol.upper())
    return info.price if info else 0.0


async def calculate_portfolio_value(holdings: dict[str, float], **kwargs) -> float:
    """USD value of ``{symbol: amount}`` holdings; unpriced tokens count as zero."""
    prices = await get_token_prices(list(holdings), **kwargs)
    total = 0.0
    for symbol, amount in holdings.items():
        info = prices.get(symbol.upper())
        if info:
            total += amount * info.price
    return total


async def snapshot_from_holdings(
    holdings: dict[str, float],
    current_apy: float,
    **kwargs,
) -> PortfolioSnapshot:
    value = await calculate_portfolio_value(holdings, **kwargs)
    return PortfolioSnapshot(total_value_usd=value, current_apy=current_apy)
