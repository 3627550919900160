"""PancakeSwap pairs provider.

The public v2 pairs endpoint reports liquidity but no yield, so every record
carries ``apy=0`` and is dropped by the scanner's positive-APY filter until a
fee-derived APY is available. Records are also labelled with chain ``"BSC"``,
which never equals the default ``"Binance"`` chain filter; both filters would
have to change before these pairs reach the ranked list.
"""
from __future__ import annotations

import logging
from typing import Any, Sequence

from yieldpilot.markets.sources.base import ProviderFailure, RawPoolRecord, YieldProvider

logger = logging.getLogger(__name__)

PANCAKESWAP_PAIRS_URL = "https://api.pancakeswap.info/api/v2/pairs"
PANCAKESWAP_CHAIN = "BSC"
MAX_RESULTS = 10


class PancakeSwapProvider(YieldProvider):
    """Reads the top PancakeSwap pairs by liquidity."""

    name = "pancakeswap"

    async def fetch(self) -> Sequence[RawPoolRecord]:
        async with self._client() as client:
            resp = await client.get(PANCAKESWAP_PAIRS_URL)
            resp.raise_for_status()
            data = resp.json()

        pairs = data.get("data") if isinstance(data, dict) else None
        if not isinstance(pairs, dict):
            raise ProviderFailure("PancakeSwap payload has no 'data' mapping")

        records = [r for r in (self._to_record(k, v) for k, v in pairs.items()) if r]
        records.sort(key=lambda r: r.tvl_usd, reverse=True)
        records = records[:MAX_RESULTS]
        logger.info("PancakeSwap returned %d pairs", len(records))
        return records

    def _to_record(self, pair_id: str, pair: dict[str, Any]) -> RawPoolRecord | None:
        try:
            return RawPoolRecord(
                pool_id=pair_id,
                protocol="PancakeSwap",
                symbol=f"{pair['base_symbol']}-{pair['quote_symbol']}",
                chain=PANCAKESWAP_CHAIN,
                tvl_usd=float(pair.get("liquidity") or 0),
                apy=0.0,
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("Skipping PancakeSwap pair %s: %s", pair_id, exc)
            return None
