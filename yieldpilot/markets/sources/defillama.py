"""DeFiLlama yields provider.

Polls https://yields.llama.fi/pools and returns every pool as a raw record.
Chain/TVL/APY filtering is left to the scanner so one fetch serves any
chain filter.
"""
from __future__ import annotations

import logging
from typing import Any, Sequence

from yieldpilot.markets.sources.base import ProviderFailure, RawPoolRecord, YieldProvider

logger = logging.getLogger(__name__)

DEFI_LLAMA_URL = "https://yields.llama.fi/pools"


class DefiLlamaProvider(YieldProvider):
    """Reads the DeFiLlama /pools feed."""

    name = "defillama"

    async def fetch(self) -> Sequence[RawPoolRecord]:
        async with self._client() as client:
            resp = await client.get(DEFI_LLAMA_URL)
            resp.raise_for_status()
            data = resp.json()

        pools = data.get("data") if isinstance(data, dict) else None
        if not isinstance(pools, list):
            raise ProviderFailure("DeFiLlama payload has no 'data' list")

        records = []
        for pool in pools:
            record = self._to_record(pool)
            if record:
                records.append(record)

        logger.info("DeFiLlama returned %d pools", len(records))
        return records

    def _to_record(self, pool: dict[str, Any]) -> RawPoolRecord | None:
        try:
            return RawPoolRecord(
                pool_id=str(pool["pool"]),
                protocol=str(pool.get("project", "unknown")),
                symbol=str(pool.get("symbol", "")),
                chain=str(pool.get("chain", "")),
                tvl_usd=float(pool.get("tvlUsd") or 0),
                apy=float(pool.get("apy") or 0),
                pool_meta=pool.get("poolMeta"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("Skipping DeFiLlama pool due to parse error: %s", exc)
            return None
