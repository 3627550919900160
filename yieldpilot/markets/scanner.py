"""OpportunityScanner — aggregates all yield providers into a ranked top-N list."""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Sequence

from yieldpilot.config import settings
from yieldpilot.markets.normalizer import normalize
from yieldpilot.markets.sources.base import RawPoolRecord, YieldOpportunity, YieldProvider
from yieldpilot.markets.sources.defillama import DefiLlamaProvider
from yieldpilot.markets.sources.pancakeswap import PancakeSwapProvider

logger = logging.getLogger(__name__)


async def _safe_fetch(provider: YieldProvider) -> list[RawPoolRecord]:
    try:
        return list(await provider.fetch())
    except Exception as exc:
        logger.warning("Provider %s failed: %s", provider.name, exc)
        return []


def _keep(record: RawPoolRecord, chain_filter: str, min_tvl_usd: float) -> bool:
    return (
        record.chain == chain_filter
        and record.tvl_usd >= min_tvl_usd
        and record.apy > 0
    )


async def fetch_top(
    providers: Sequence[YieldProvider],
    chain_filter: str,
    min_tvl_usd: float,
    limit: int,
    allowed_protocols: Iterable[str] = (),
) -> list[YieldOpportunity]:
    """Fetch, filter, normalize, dedupe and rank pools from all providers.

    Never raises: a failing provider contributes nothing, and if every
    provider fails the result is an empty list.
    """
    batches = await asyncio.gather(*[_safe_fetch(p) for p in providers])

    allowed = {p.lower() for p in allowed_protocols}
    seen: set[str] = set()
    opportunities: list[YieldOpportunity] = []
    for batch in batches:
        for record in batch:
            if not _keep(record, chain_filter, min_tvl_usd):
                continue
            try:
                opp = normalize(record)
            except ValueError as exc:
                logger.debug("Skipping pool %r: %s", record.pool_id, exc)
                continue
            if allowed and opp.protocol.lower() not in allowed:
                continue
            if opp.id in seen:
                continue
            seen.add(opp.id)
            opportunities.append(opp)

    # sorted() is stable: equal TVLs keep provider order
    ranked = sorted(opportunities, key=lambda o: o.tvl_usd, reverse=True)
    return ranked[: max(limit, 0)]


def default_providers() -> list[YieldProvider]:
    return [DefiLlamaProvider(), PancakeSwapProvider()]


class OpportunityScanner:
    """Holds the provider registry and the latest ranked opportunity list."""

    def __init__(
        self,
        providers: Sequence[YieldProvider] | None = None,
        *,
        chain_filter: str | None = None,
        min_tvl_usd: float | None = None,
        limit: int | None = None,
        allowed_protocols: Iterable[str] | None = None,
    ) -> None:
        self.providers = list(providers) if providers is not None else default_providers()
        self.chain_filter = chain_filter or settings.chain_filter
        self.min_tvl_usd = settings.min_tvl_usd if min_tvl_usd is None else min_tvl_usd
        self.limit = settings.top_n if limit is None else limit
        self.allowed_protocols = list(
            settings.allowed_protocols if allowed_protocols is None else allowed_protocols
        )
        self._latest: list[YieldOpportunity] = []
        self._refresh_lock = asyncio.Lock()

    @property
    def latest(self) -> list[YieldOpportunity]:
        return list(self._latest)

    async def scan(self) -> list[YieldOpportunity]:
        """Run all providers once with the configured filters."""
        ranked = await fetch_top(
            self.providers,
            chain_filter=self.chain_filter,
            min_tvl_usd=self.min_tvl_usd,
            limit=self.limit,
            allowed_protocols=self.allowed_protocols,
        )
        logger.info("Scanner found %d opportunities on %s", len(ranked), self.chain_filter)
        return ranked

    async def refresh(self) -> list[YieldOpportunity]:
        """Scan and replace the latest list. Overlapping calls run one after another."""
        async with self._refresh_lock:
            self._latest = await self.scan()
            return list(self._latest)

    async def run_periodic(self, interval_minutes: float | None = None) -> None:
        """Refresh forever; each refresh completes before the next sleep starts."""
        minutes = interval_minutes or settings.refresh_interval_minutes
        while True:
            await self.refresh()
            logger.info("Next refresh in %s minutes", minutes)
            await asyncio.sleep(minutes * 60)
