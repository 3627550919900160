"""HTTP surface for a presentation layer.

/opportunities              → ranked pools from the latest refresh
/advisory                   → portfolio advisory for a snapshot or holdings
/transactions/*             → drive the approve-then-deposit flow
/audit/approvals            → pending operator approvals (audit mode)
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException
from pydantic import BaseModel, Field

from yieldpilot.advisory.client import AdvisoryClient
from yieldpilot.advisory.models import PortfolioSnapshot
from yieldpilot.core.audit import approvals
from yieldpilot.markets.prices import snapshot_from_holdings
from yieldpilot.markets.scanner import OpportunityScanner
from yieldpilot.markets.sources.base import YieldOpportunity
from yieldpilot.transactions.orchestrator import TransactionIntent, TransactionOrchestrator

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

router = APIRouter()

# Injected at startup (see setup())
_scanner: OpportunityScanner | None = None
_advisory: AdvisoryClient | None = None
_orchestrator: TransactionOrchestrator | None = None


def setup(
    scanner: OpportunityScanner,
    advisory: AdvisoryClient,
    orchestrator: TransactionOrchestrator,
) -> None:
    global _scanner, _advisory, _orchestrator
    _scanner = scanner
    _advisory = advisory
    _orchestrator = orchestrator


def _require(service: Any, name: str) -> Any:
    if service is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialised")
    return service


async def _find_opportunity(opportunity_id: str) -> YieldOpportunity:
    scanner: OpportunityScanner = _require(_scanner, "scanner")
    for opp in scanner.latest:
        if opp.id == opportunity_id:
            return opp
    logger.debug("Unknown opportunity id %r", opportunity_id)
    raise HTTPException(status_code=404, detail="Opportunity not found")


# ── request bodies ────────────────────────────────────────────────────────────


class AdvisoryRequest(BaseModel):
    total_value_usd: float | None = Field(default=None, ge=0)
    current_apy: float = 0.0
    holdings: dict[str, float] | None = None


class StartRequest(BaseModel):
    opportunity_id: str
    amount: str


class ApprovalRequest(BaseModel):
    approved: bool


# ── market / advisory ─────────────────────────────────────────────────────────


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "version": VERSION}


@router.get("/opportunities")
async def opportunities(refresh: bool = False) -> list[dict]:
    scanner: OpportunityScanner = _require(_scanner, "scanner")
    ranked = await scanner.refresh() if refresh else scanner.latest
    return [opp.to_dict() for opp in ranked]


@router.get("/opportunities/{opportunity_id}/insight")
async def opportunity_insight(opportunity_id: str) -> dict:
    advisory: AdvisoryClient = _require(_advisory, "advisory client")
    opp = await _find_opportunity(opportunity_id)
    return {"id": opp.id, "insight": await advisory.pool_insight(opp)}


@router.post("/advisory")
async def advisory(body: AdvisoryRequest) -> dict:
    client: AdvisoryClient = _require(_advisory, "advisory client")
    scanner: OpportunityScanner = _require(_scanner, "scanner")
    if body.holdings is not None:
        snapshot = await snapshot_from_holdings(body.holdings, body.current_apy)
    elif body.total_value_usd is not None:
        snapshot = PortfolioSnapshot(
            total_value_usd=body.total_value_usd, current_apy=body.current_apy
        )
    else:
        raise HTTPException(status_code=422, detail="Provide total_value_usd or holdings")
    result = await client.recommend(snapshot, scanner.latest)
    return result.model_dump()


# ── transactions ──────────────────────────────────────────────────────────────


def _state(accepted: bool | None = None) -> dict:
    orchestrator: TransactionOrchestrator = _require(_orchestrator, "orchestrator")
    payload = orchestrator.view.to_dict()
    if accepted is not None:
        payload["accepted"] = accepted
    return payload


@router.get("/transactions/state")
async def transaction_state() -> dict:
    return _state()


@router.post("/transactions/start")
async def transaction_start(body: StartRequest) -> dict:
    orchestrator: TransactionOrchestrator = _require(_orchestrator, "orchestrator")
    opp = await _find_opportunity(body.opportunity_id)
    accepted = await orchestrator.start(TransactionIntent.from_opportunity(opp, body.amount))
    return _state(accepted)


@router.post("/transactions/confirm-approval")
async def transaction_confirm_approval() -> dict:
    orchestrator: TransactionOrchestrator = _require(_orchestrator, "orchestrator")
    return _state(await orchestrator.confirm_approval())


@router.post("/transactions/confirm-deposit")
async def transaction_confirm_deposit() -> dict:
    orchestrator: TransactionOrchestrator = _require(_orchestrator, "orchestrator")
    return _state(await orchestrator.confirm_deposit())


@router.post("/transactions/retry")
async def transaction_retry() -> dict:
    orchestrator: TransactionOrchestrator = _require(_orchestrator, "orchestrator")
    return _state(await orchestrator.retry())


@router.post("/transactions/cancel")
async def transaction_cancel() -> dict:
    orchestrator: TransactionOrchestrator = _require(_orchestrator, "orchestrator")
    orchestrator.cancel()
    return _state(True)


# ── audit approval endpoints ──────────────────────────────────────────────────


@router.get("/audit/approvals")
async def get_approvals() -> list[dict]:
    """Pending on-chain submissions waiting for operator approval."""
    return approvals.pending()


@router.post("/audit/approvals/{approval_id}")
async def post_approval(approval_id: str, body: ApprovalRequest) -> dict:
    if not approvals.resolve(approval_id, body.approved):
        raise HTTPException(status_code=404, detail="Approval ID not found")
    return {"ok": True, "approved": body.approved}


def create_app(lifespan=None) -> FastAPI:
    app = FastAPI(
        title="yieldpilot",
        description="BNB Chain yield discovery, advisory and liquidity deposits",
        version=VERSION,
        lifespan=lifespan,
    )
    app.include_router(router)
    return app
