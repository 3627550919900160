"""Advisory request/response schemas.

The reasoning service is untrusted: its JSON reply is validated against these
models, and anything that does not fit is replaced by the fallback advisory.
"""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PortfolioSnapshot(BaseModel):
    total_value_usd: float = Field(ge=0)
    current_apy: float


class AdvisoryRecommendation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    reasoning: str
    expected_apy_delta: float = Field(alias="expectedAPY")
    risk_level: Literal["low", "medium", "high"] = Field(alias="riskLevel")
    confidence: int = Field(ge=0, le=100)
    pools: list[str] = Field(default_factory=list)

    @field_validator("risk_level", mode="before")
    @classmethod
    def lower_risk(cls, v: object) -> object:
        return v.lower() if isinstance(v, str) else v


class PortfolioAdvisory(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str
    recommendations: list[AdvisoryRecommendation] = Field(min_length=1)
    risk_assessment: str = Field(alias="riskAssessment")
    diversification_score: int = Field(alias="diversificationScore", ge=0, le=100)


class AdvisoryReply(BaseModel):
    """Shape of the single JSON object the reasoning service must return."""

    summary: str
    recommendation: AdvisoryRecommendation
    riskAssessment: str
    diversificationScore: int = Field(ge=0, le=100)

    def to_advisory(self) -> PortfolioAdvisory:
        return PortfolioAdvisory(
            summary=self.summary,
            recommendations=[self.recommendation],
            risk_assessment=self.riskAssessment,
            diversification_score=self.diversificationScore,
        )
