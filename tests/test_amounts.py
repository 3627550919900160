"""Tests for fixed-point amounts, contracts and explorer helpers."""
from __future__ import annotations

from decimal import Decimal

import pytest

from yieldpilot.transactions import amounts
from yieldpilot.transactions.contracts import TOKENS, resolve_pair, resolve_token
from yieldpilot.transactions.explorer import format_tx_hash, tx_url

ONE = 10**18


def test_min_amount_default_slippage_is_exact():
    assert amounts.min_amount(100 * ONE, 0.5) == 995 * 10**17


def test_min_amount_is_stable_across_calls():
    desired = amounts.parse_units("123.456")
    assert {amounts.min_amount(desired) for _ in range(5)} == {desired * 9950 // 10_000}


def test_slippage_multiplier():
    assert amounts.slippage_multiplier(0.5) == 9950
    assert amounts.slippage_multiplier(1) == 9900
    assert amounts.slippage_multiplier(0) == 10_000


def test_slippage_out_of_range():
    with pytest.raises(ValueError):
        amounts.slippage_multiplier(100)


def test_parse_units():
    assert amounts.parse_units("1.5") == 15 * 10**17
    assert amounts.parse_units("10") == 10 * ONE
    assert amounts.parse_units("0.5", decimals=6) == 500_000


def test_parse_units_truncates_excess_precision():
    assert amounts.parse_units("0.1234567", decimals=6) == 123_456


def test_parse_units_rejects_garbage():
    with pytest.raises(ValueError):
        amounts.parse_units("ten")


def test_format_units():
    assert amounts.format_units(15 * 10**17) == "1.5"
    assert amounts.format_units(10 * ONE) == "10"


@pytest.mark.parametrize("raw", ["0", "-1", "abc", "", "NaN", "Infinity"])
def test_parse_positive_amount_refuses(raw):
    assert amounts.parse_positive_amount(raw) is None


def test_parse_positive_amount_accepts():
    assert amounts.parse_positive_amount(" 10.25 ") == Decimal("10.25")


def test_deadline():
    assert amounts.deadline(now=1_700_000_000.7) == 1_700_001_200


def test_estimated_annual_return():
    assert amounts.estimated_annual_return("1000", 12.5) == Decimal("125.00")


def test_resolve_token_aliases_wbnb():
    assert resolve_token("wbnb") == TOKENS["BNB"]
    assert resolve_token("DOGE") is None


def test_resolve_pair_falls_back_to_default():
    assert resolve_pair(("CAKE", "WBNB"), ("BNB", "BUSD")) == ("CAKE", "WBNB")
    assert resolve_pair(("XVS",), ("BNB", "BUSD")) == ("BNB", "BUSD")
    assert resolve_pair(("ALPACA", "BUSD"), ("BNB", "BUSD")) == ("BNB", "BUSD")


def test_tx_url():
    assert tx_url("0xabc", testnet=False) == "https://bscscan.com/tx/0xabc"
    assert tx_url("0xabc", testnet=True) == "https://testnet.bscscan.com/tx/0xabc"


def test_format_tx_hash():
    assert format_tx_hash("0x1234567890abcdef") == "0x1234...cdef"
