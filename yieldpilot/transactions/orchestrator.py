"""TransactionOrchestrator — approve-then-deposit flow for one liquidity intent.

    INPUT ──start──▶ APPROVING ──approval ok──▶ DEPOSITING ──deposit ok──▶ SUCCESS
      ▲                  │ fail: error set            │ fail: error set
      └──────cancel──────┴────────────────────────────┴──────────────────────┘

Chain failures never raise out of the public methods; they land on
``view.error`` and stay there until ``retry()`` or ``cancel()``.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Callable

from yieldpilot.config import settings
from yieldpilot.finance.wallet import ChainWallet, OperationHandle, OperationResult
from yieldpilot.markets.sources.base import YieldOpportunity
from yieldpilot.transactions import amounts
from yieldpilot.transactions.contracts import resolve_pair
from yieldpilot.transactions.explorer import tx_url

logger = logging.getLogger(__name__)


class TxStep(StrEnum):
    INPUT = "input"
    APPROVING = "approving"
    DEPOSITING = "depositing"
    SUCCESS = "success"


@dataclass(frozen=True)
class TransactionIntent:
    pool_label: str
    protocol: str
    apy: float
    amount: str
    tokens: tuple[str, ...] = ()

    @classmethod
    def from_opportunity(cls, opp: YieldOpportunity, amount: str) -> "TransactionIntent":
        return cls(
            pool_label=opp.pool_label,
            protocol=opp.protocol,
            apy=opp.apy,
            amount=amount,
            tokens=opp.tokens,
        )


@dataclass(frozen=True)
class LiquidityParams:
    token_a: str
    token_b: str
    amount_a_desired: int
    amount_b_desired: int
    amount_a_min: int
    amount_b_min: int
    recipient: str
    deadline: int


@dataclass(frozen=True)
class OrchestratorView:
    step: TxStep
    intent: TransactionIntent | None = None
    error: str | None = None
    busy: bool = False
    approve_tx_hash: str | None = None
    deposit_tx_hash: str | None = None
    estimated_annual_return: Decimal | None = None

    @property
    def deposit_tx_url(self) -> str | None:
        return tx_url(self.deposit_tx_hash) if self.deposit_tx_hash else None

    def to_dict(self) -> dict:
        intent = self.intent
        return {
            "step": str(self.step),
            "intent": None if intent is None else {
                "pool": intent.pool_label,
                "protocol": intent.protocol,
                "apy": intent.apy,
                "amount": intent.amount,
                "tokens": list(intent.tokens),
            },
            "error": self.error,
            "busy": self.busy,
            "approve_tx_hash": self.approve_tx_hash,
            "deposit_tx_hash": self.deposit_tx_hash,
            "deposit_tx_url": self.deposit_tx_url,
            "estimated_annual_return": (
                None if self.estimated_annual_return is None
                else str(self.estimated_annual_return)
            ),
        }


class TransactionOrchestrator:
    """Drives one intent at a time through approval and deposit."""

    def __init__(
        self,
        wallet: ChainWallet,
        *,
        router: str | None = None,
        slippage_percent: float | None = None,
        deadline_seconds: int | None = None,
        decimals: int | None = None,
        deposit_token: str | None = None,
        default_pair: tuple[str, str] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._wallet = wallet
        self.router = router or settings.router_address
        self.slippage_percent = (
            settings.slippage_percent if slippage_percent is None else slippage_percent
        )
        self.deadline_seconds = (
            settings.deadline_seconds if deadline_seconds is None else deadline_seconds
        )
        self.decimals = settings.token_decimals if decimals is None else decimals
        self.deposit_token = (deposit_token or settings.deposit_token).upper()
        self.default_pair = default_pair or tuple(settings.default_pair)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._generation = 0
        self._reset()

    def _reset(self) -> None:
        self._step = TxStep.INPUT
        self._intent: TransactionIntent | None = None
        self._error: str | None = None
        self._approval: OperationHandle | None = None
        self._deposit: OperationHandle | None = None
        self._approve_hash: str | None = None
        self._deposit_hash: str | None = None
        # bumped on cancel so in-flight results for a dismissed intent are dropped
        self._generation += 1

    # ── queries ───────────────────────────────────────────────────────────────

    @property
    def view(self) -> OrchestratorView:
        intent = self._intent
        return OrchestratorView(
            step=self._step,
            intent=intent,
            error=self._error,
            busy=self._lock.locked(),
            approve_tx_hash=self._approve_hash,
            deposit_tx_hash=self._deposit_hash,
            estimated_annual_return=(
                amounts.estimated_annual_return(intent.amount, intent.apy) if intent else None
            ),
        )

    def _pair(self) -> tuple[str, str]:
        assert self._intent is not None
        return resolve_pair(self._intent.tokens, self.default_pair)

    def _desired(self) -> int:
        assert self._intent is not None
        return amounts.parse_units(self._intent.amount, self.decimals)

    def liquidity_params(self) -> LiquidityParams:
        """Deposit arguments for the current intent, computed at call time."""
        token_a, token_b = self._pair()
        desired = self._desired()
        minimum = amounts.min_amount(desired, self.slippage_percent)
        return LiquidityParams(
            token_a=token_a,
            token_b=token_b,
            amount_a_desired=desired,
            amount_b_desired=desired,
            amount_a_min=minimum,
            amount_b_min=minimum,
            recipient=self._wallet.address or "",
            deadline=amounts.deadline(now=self._clock(), seconds=self.deadline_seconds),
        )

    # ── submissions ───────────────────────────────────────────────────────────

    async def _submit_approval(self) -> bool:
        token_a, token_b = self._pair()
        token = self.deposit_token if self.deposit_token in (token_a, token_b) else token_b
        generation = self._generation
        try:
            handle = await self._wallet.approve_spend(token, self.router, self._desired())
        except Exception as exc:
            if generation != self._generation:
                return False
            logger.error("Approval submission failed: %s", exc)
            self._error = str(exc) or type(exc).__name__
            self._approval = None
            return False
        if generation != self._generation:
            logger.info("Approval %s belongs to a dismissed intent; ignoring", handle.tx_hash)
            return False
        self._approval = handle
        self._approve_hash = handle.tx_hash
        self._error = None
        return True

    async def _submit_deposit(self) -> bool:
        generation = self._generation
        try:
            params = self.liquidity_params()
            handle = await self._wallet.submit_liquidity(
                params.token_a,
                params.token_b,
                params.amount_a_desired,
                params.amount_b_desired,
                params.amount_a_min,
                params.amount_b_min,
                params.recipient,
                params.deadline,
                self.router,
            )
        except Exception as exc:
            if generation != self._generation:
                return False
            logger.error("Deposit submission failed: %s", exc)
            self._error = str(exc) or type(exc).__name__
            self._deposit = None
            return False
        if generation != self._generation:
            logger.info("Deposit %s belongs to a dismissed intent; ignoring", handle.tx_hash)
            return False
        self._deposit = handle
        self._deposit_hash = handle.tx_hash
        self._error = None
        return True

    # ── chain signals ─────────────────────────────────────────────────────────

    def on_approval_result(self, result: OperationResult) -> None:
        if self._step is not TxStep.APPROVING:
            return
        if result.tx_hash:
            self._approve_hash = result.tx_hash
        if result.success:
            logger.info("Approval confirmed: %s", result.tx_hash)
            self._step = TxStep.DEPOSITING
            self._error = None
        else:
            logger.error("Approval failed: %s", result.error)
            self._error = result.error or "Approval failed"
            self._approval = None

    def on_deposit_result(self, result: OperationResult) -> None:
        if self._step is not TxStep.DEPOSITING:
            return
        if result.tx_hash:
            self._deposit_hash = result.tx_hash
        if result.success:
            logger.info("Liquidity added: %s", tx_url(result.tx_hash) if result.tx_hash else "-")
            self._step = TxStep.SUCCESS
            self._error = None
        else:
            logger.error("Deposit failed: %s", result.error)
            self._error = result.error or "Deposit failed"
            self._deposit = None

    # ── commands ──────────────────────────────────────────────────────────────

    async def start(self, intent: TransactionIntent) -> bool:
        """Begin the approval step. Refused without side effects on bad input."""
        if self._lock.locked() or self._step is not TxStep.INPUT:
            return False
        if amounts.parse_positive_amount(intent.amount) is None:
            logger.debug("Refusing intent with amount %r", intent.amount)
            return False
        if not self._wallet.address:
            logger.debug("Refusing intent: no wallet address")
            return False

        async with self._lock:
            self._intent = intent
            self._step = TxStep.APPROVING
            self._error = None
            self._approval = self._deposit = None
            self._approve_hash = self._deposit_hash = None
            logger.info(
                "Starting deposit of %s into %s %s", intent.amount, intent.protocol, intent.pool_label
            )
            await self._submit_approval()
        return True

    async def confirm_approval(self) -> bool:
        """Wait for the approval to settle. True once the flow reaches DEPOSITING."""
        if self._lock.locked() or self._step is not TxStep.APPROVING or self._approval is None:
            return False
        async with self._lock:
            generation = self._generation
            result = await self._approval.wait()
            if generation != self._generation:
                return False
            self.on_approval_result(result)
            return self._step is TxStep.DEPOSITING

    async def confirm_deposit(self) -> bool:
        """Submit the deposit if needed and wait for it. True once SUCCESS."""
        if self._lock.locked() or self._step is not TxStep.DEPOSITING:
            return False
        async with self._lock:
            generation = self._generation
            if self._deposit is None and not await self._submit_deposit():
                return False
            result = await self._deposit.wait()
            if generation != self._generation:
                return False
            self.on_deposit_result(result)
            return self._step is TxStep.SUCCESS

    async def retry(self) -> bool:
        """Re-submit the current step's operation after a failure."""
        if self._lock.locked() or self._error is None:
            return False
        async with self._lock:
            if self._step is TxStep.APPROVING:
                logger.info("Retrying approval")
                return await self._submit_approval()
            if self._step is TxStep.DEPOSITING:
                logger.info("Retrying deposit")
                return await self._submit_deposit()
        return False

    def cancel(self) -> None:
        """Dismiss the current intent from any state."""
        if self._step is not TxStep.INPUT:
            logger.info("Transaction flow cancelled at %s", self._step)
        self._reset()
