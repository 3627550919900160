"""Tests for provider aggregation and the opportunity scanner."""
from __future__ import annotations

import asyncio
from dataclasses import replace

import httpx

from yieldpilot.markets.scanner import OpportunityScanner, fetch_top
from yieldpilot.markets.sources.base import ProviderFailure, RawPoolRecord, YieldProvider
from yieldpilot.markets.sources.defillama import DefiLlamaProvider
from yieldpilot.markets.sources.pancakeswap import PancakeSwapProvider


def make_record(
    pool_id: str,
    tvl_usd: float = 5_000_000,
    apy: float = 10.0,
    chain: str = "Binance",
    protocol: str = "pancakeswap",
    symbol: str = "WBNB-BUSD",
) -> RawPoolRecord:
    return RawPoolRecord(
        pool_id=pool_id,
        protocol=protocol,
        symbol=symbol,
        chain=chain,
        tvl_usd=tvl_usd,
        apy=apy,
    )


class StaticProvider(YieldProvider):
    name = "static"

    def __init__(self, records: list[RawPoolRecord]) -> None:
        super().__init__()
        self.records = records
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        return list(self.records)


class FailingProvider(YieldProvider):
    name = "failing"

    async def fetch(self):
        raise ProviderFailure("upstream down")


class ExplodingProvider(YieldProvider):
    name = "exploding"

    async def fetch(self):
        raise httpx.ConnectError("connection refused")


async def _top(providers, limit=8, allowed=()):
    return await fetch_top(
        providers,
        chain_filter="Binance",
        min_tvl_usd=1_000_000,
        limit=limit,
        allowed_protocols=allowed,
    )


# ── fetch_top ─────────────────────────────────────────────────────────────────


async def test_filters_chain_and_ranks_by_tvl():
    provider = StaticProvider([
        make_record("a", tvl_usd=3_000_000),
        make_record("b", tvl_usd=5_000_000),
        make_record("c", tvl_usd=1_000_000),
        make_record("eth", tvl_usd=9_000_000, chain="Ethereum"),
    ])
    result = await _top([provider])
    assert [o.tvl_usd for o in result] == [5_000_000, 3_000_000, 1_000_000]
    assert all(o.chain == "Binance" for o in result)


async def test_drops_low_tvl_and_zero_apy():
    provider = StaticProvider([
        make_record("small", tvl_usd=999_999),
        make_record("flat", apy=0),
        make_record("ok"),
    ])
    result = await _top([provider])
    assert [o.id for o in result] == ["ok"]


async def test_failing_provider_contributes_nothing():
    good = StaticProvider([make_record("x"), make_record("y", tvl_usd=2_000_000)])
    result = await _top([FailingProvider(), good, ExplodingProvider()])
    assert [o.id for o in result] == ["x", "y"]


async def test_all_providers_failing_returns_empty():
    assert await _top([FailingProvider(), ExplodingProvider()]) == []


async def test_dedupes_by_id_first_provider_wins():
    first = StaticProvider([make_record("dup", apy=10)])
    second = StaticProvider([make_record("dup", apy=99)])
    result = await _top([first, second])
    assert len(result) == 1
    assert result[0].apy == 10


async def test_allow_list_is_case_insensitive():
    provider = StaticProvider([
        make_record("p", protocol="PancakeSwap"),
        make_record("v", protocol="venus"),
        make_record("z", protocol="some-farm"),
    ])
    result = await _top([provider], allowed=["pancakeswap", "VENUS"])
    assert {o.id for o in result} == {"p", "v"}


async def test_empty_allow_list_keeps_everything():
    provider = StaticProvider([make_record("z", protocol="some-farm")])
    assert len(await _top([provider], allowed=[])) == 1


async def test_truncates_to_limit():
    provider = StaticProvider([make_record(str(i), tvl_usd=1_000_000 + i) for i in range(20)])
    result = await _top([provider], limit=8)
    assert len(result) == 8
    assert result[0].id == "19"


async def test_equal_tvl_keeps_provider_order():
    provider = StaticProvider([make_record("first"), make_record("second")])
    result = await _top([provider])
    assert [o.id for o in result] == ["first", "second"]


async def test_unnormalizable_record_is_dropped():
    provider = StaticProvider([make_record("bad", symbol=""), make_record("good")])
    assert [o.id for o in await _top([provider])] == ["good"]


# ── scanner ───────────────────────────────────────────────────────────────────


def make_scanner(*providers: YieldProvider) -> OpportunityScanner:
    return OpportunityScanner(
        list(providers),
        chain_filter="Binance",
        min_tvl_usd=1_000_000,
        limit=8,
        allowed_protocols=[],
    )


async def test_refresh_replaces_latest():
    provider = StaticProvider([make_record("a")])
    scanner = make_scanner(provider)
    assert scanner.latest == []
    await scanner.refresh()
    assert [o.id for o in scanner.latest] == ["a"]


async def test_concurrent_refreshes_do_not_overlap():
    active = 0
    peak = 0

    class SlowProvider(YieldProvider):
        name = "slow"

        async def fetch(self):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return [make_record("s")]

    scanner = make_scanner(SlowProvider())
    await asyncio.gather(scanner.refresh(), scanner.refresh(), scanner.refresh())
    assert peak == 1


# ── providers over a mock transport ───────────────────────────────────────────


def _transport(payload, status_code: int = 200) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return httpx.MockTransport(handler)


async def test_defillama_provider_maps_fields():
    payload = {"data": [
        {
            "pool": "abc",
            "project": "venus",
            "symbol": "USDT",
            "chain": "Binance",
            "tvlUsd": 12_000_000,
            "apy": 4.2,
            "poolMeta": None,
        },
        {"project": "no-pool-key"},
    ]}
    records = await DefiLlamaProvider(transport=_transport(payload)).fetch()
    assert len(records) == 1
    assert records[0].pool_id == "abc"
    assert records[0].tvl_usd == 12_000_000
    assert records[0].apy == 4.2


async def test_defillama_malformed_payload_is_skipped_by_scanner():
    provider = DefiLlamaProvider(transport=_transport({"status": "error"}))
    assert await _top([provider]) == []


async def test_defillama_http_error_is_skipped_by_scanner():
    provider = DefiLlamaProvider(transport=_transport({}, status_code=500))
    good = StaticProvider([make_record("ok")])
    assert [o.id for o in await _top([provider, good])] == ["ok"]


async def test_pancakeswap_provider_records_have_no_apy():
    payload = {"data": {
        "0xpair1": {"base_symbol": "CAKE", "quote_symbol": "WBNB", "liquidity": "5000000"},
        "0xpair2": {"base_symbol": "WBNB", "quote_symbol": "BUSD", "liquidity": "9000000"},
    }}
    records = await PancakeSwapProvider(transport=_transport(payload)).fetch()
    assert [r.pool_id for r in records] == ["0xpair2", "0xpair1"]
    assert all(r.apy == 0 for r in records)
    assert records[0].symbol == "WBNB-BUSD"


async def test_pancakeswap_pairs_never_reach_default_ranking():
    payload = {"data": {
        "0xpair2": {"base_symbol": "WBNB", "quote_symbol": "BUSD", "liquidity": "9000000"},
    }}
    provider = PancakeSwapProvider(transport=_transport(payload))
    records = await provider.fetch()
    assert records[0].chain == "BSC"
    # even with a yield attached, the chain label alone keeps it out
    with_apy = StaticProvider([replace(r, apy=12.0) for r in records])
    assert await _top([with_apy]) == []
    assert await _top([provider]) == []
