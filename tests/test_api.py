"""Tests for the HTTP routes."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from yieldpilot import api
from yieldpilot.advisory.client import AdvisoryClient, AdvisoryConfig
from yieldpilot.finance.wallet import ChainWallet, OperationHandle, OperationResult
from yieldpilot.markets.scanner import OpportunityScanner
from yieldpilot.markets.sources.base import RawPoolRecord, YieldProvider
from yieldpilot.transactions.orchestrator import TransactionOrchestrator


class StaticProvider(YieldProvider):
    name = "static"

    async def fetch(self):
        return [
            RawPoolRecord("pool-a", "pancakeswap", "WBNB-BUSD", "Binance", 40_000_000, 9.5),
            RawPoolRecord("pool-b", "venus", "USDT", "Binance", 90_000_000, 3.1),
        ]


class DoneHandle(OperationHandle):
    def __init__(self, tx_hash: str) -> None:
        self.tx_hash = tx_hash

    async def wait(self) -> OperationResult:
        return OperationResult(True, self.tx_hash)


class InstantWallet(ChainWallet):
    @property
    def address(self):
        return "0x000000000000000000000000000000000000dEaD"

    async def approve_spend(self, token, spender, amount):
        return DoneHandle("0x" + "a" * 64)

    async def submit_liquidity(self, *args):
        return DoneHandle("0x" + "d" * 64)


@pytest.fixture
def client():
    scanner = OpportunityScanner(
        [StaticProvider()],
        chain_filter="Binance",
        min_tvl_usd=1_000_000,
        limit=8,
        allowed_protocols=[],
    )
    api.setup(
        scanner=scanner,
        advisory=AdvisoryClient(AdvisoryConfig(api_key=None)),
        orchestrator=TransactionOrchestrator(InstantWallet()),
    )
    with TestClient(api.create_app()) as test_client:
        test_client.get("/opportunities", params={"refresh": True})
        yield test_client


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_opportunities_ranked(client):
    data = client.get("/opportunities").json()
    assert [o["id"] for o in data] == ["pool-b", "pool-a"]
    assert data[0]["tvl"] == "$90.00M"
    assert data[1]["risk"] == "low"


def test_advisory_without_credential_is_fallback(client):
    resp = client.post("/advisory", json={"total_value_usd": 1000, "current_apy": 5})
    assert resp.status_code == 200
    assert resp.json()["diversification_score"] == 78


def test_advisory_needs_value_or_holdings(client):
    assert client.post("/advisory", json={"current_apy": 5}).status_code == 422


def test_insight_fallback(client):
    data = client.get("/opportunities/pool-a/insight").json()
    assert "WBNB-BUSD" in data["insight"]


def test_unknown_opportunity_404(client):
    resp = client.post("/transactions/start", json={"opportunity_id": "nope", "amount": "1"})
    assert resp.status_code == 404


def test_transaction_flow(client):
    resp = client.post("/transactions/start", json={"opportunity_id": "pool-a", "amount": "10"})
    assert resp.json()["accepted"] is True
    assert resp.json()["step"] == "approving"

    assert client.post("/transactions/confirm-approval").json()["step"] == "depositing"
    done = client.post("/transactions/confirm-deposit").json()
    assert done["step"] == "success"
    assert done["deposit_tx_url"].endswith("d" * 64)

    assert client.post("/transactions/cancel").json()["step"] == "input"


def test_start_with_zero_amount_refused(client):
    resp = client.post("/transactions/start", json={"opportunity_id": "pool-a", "amount": "0"})
    assert resp.json()["accepted"] is False
    assert client.get("/transactions/state").json()["step"] == "input"


def test_audit_approvals_empty(client):
    assert client.get("/audit/approvals").json() == []
    resp = client.post("/audit/approvals/unknown", json={"approved": True})
    assert resp.status_code == 404
