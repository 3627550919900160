"""Base types shared by all yield providers."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

import httpx

from yieldpilot.config import settings
from yieldpilot.markets.scorer import RiskTier


class ProviderFailure(Exception):
    """Raised by a provider when its payload cannot be used at all."""


@dataclass(frozen=True)
class RawPoolRecord:
    """A pool as reported by a data provider, before normalization."""

    pool_id: str
    protocol: str
    symbol: str
    chain: str
    tvl_usd: float
    apy: float
    pool_meta: str | None = None


@dataclass(frozen=True)
class YieldOpportunity:
    """Canonical, provider-independent yield opportunity.

    ``risk_tier`` and ``tvl_display`` are derived from ``apy``/``tvl_usd`` by
    the normalizer; build instances through
    :func:`yieldpilot.markets.normalizer.normalize`.
    """

    id: str
    protocol: str
    pool_label: str
    apy: float
    tvl_usd: float
    tvl_display: str
    risk_tier: RiskTier
    tokens: tuple[str, ...]
    chain: str
    pool_meta: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "protocol": self.protocol,
            "pool": self.pool_label,
            "apy": self.apy,
            "tvl": self.tvl_display,
            "tvl_usd": self.tvl_usd,
            "risk": str(self.risk_tier),
            "tokens": list(self.tokens),
            "chain": self.chain,
            "pool_meta": self.pool_meta,
        }


class YieldProvider(ABC):
    """ABC for all pool data providers.

    Each implementation polls one data source (DeFiLlama, a DEX API, ...)
    and returns raw records; filtering, normalization and ranking happen in
    the scanner.
    """

    name: str = "base"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=settings.http_timeout_seconds,
            transport=self._transport,
        )

    @abstractmethod
    async def fetch(self) -> Sequence[RawPoolRecord]:
        """Return every pool this provider currently reports."""
        ...
