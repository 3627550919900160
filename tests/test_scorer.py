"""Tests for the risk scorer and TVL formatting."""
from __future__ import annotations

import pytest

from yieldpilot.markets.scorer import RiskTier, format_tvl, score


@pytest.mark.parametrize(
    "apy, tvl, expected",
    [
        (150, 500_000_000, RiskTier.HIGH),
        (60, 2_000_000, RiskTier.HIGH),
        (60, 20_000_000, RiskTier.MEDIUM),
        (45, 50_000_000, RiskTier.MEDIUM),
        (35, 8_000_000, RiskTier.MEDIUM),
        (35, 20_000_000, RiskTier.LOW),
        (12, 1_000_000, RiskTier.LOW),
    ],
)
def test_score_tiers(apy, tvl, expected):
    assert score(apy, tvl) is expected


def test_score_boundaries_are_strict():
    assert score(100, 10_000_000_000) is RiskTier.MEDIUM
    assert score(100.01, 10_000_000_000) is RiskTier.HIGH
    # 100% APY on a thin pool is still high through the low-liquidity rule
    assert score(100, 1_000) is RiskTier.HIGH
    assert score(50, 1_000) is RiskTier.MEDIUM
    assert score(40, 50_000_000) is RiskTier.LOW
    assert score(30, 1_000) is RiskTier.LOW


def test_score_tvl_threshold_is_exclusive():
    # exactly $5M is not "below $5M"
    assert score(60, 5_000_000) is RiskTier.MEDIUM
    assert score(35, 10_000_000) is RiskTier.LOW


def test_score_zero_inputs():
    assert score(0, 0) is RiskTier.LOW


def test_risk_tier_is_plain_string():
    assert f"{RiskTier.HIGH}" == "high"


@pytest.mark.parametrize(
    "tvl, expected",
    [
        (2_500_000_000, "$2.50B"),
        (1_000_000_000, "$1.00B"),
        (12_345_678, "$12.35M"),
        (1_000_000, "$1.00M"),
        (999_999, "$1000.00K"),
        (1_500, "$1.50K"),
        (999.5, "$999.50"),
        (0, "$0.00"),
    ],
)
def test_format_tvl(tvl, expected):
    assert format_tvl(tvl) == expected
