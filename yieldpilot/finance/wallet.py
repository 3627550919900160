"""EVM wallet on BNB Chain.

``ChainWallet`` is the seam the transaction orchestrator talks to: two
submissions (token approval, liquidity deposit), each returning a handle
whose ``wait()`` resolves to success or failure once the chain reports.
``Web3Wallet`` implements it with web3.py and a locally held key.
"""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3

from yieldpilot.config import settings
from yieldpilot.core.audit import (
    ApproveRequest,
    AuditDenied,
    DepositRequest,
    SubmissionRequest,
    require_approval,
)
from yieldpilot.transactions.amounts import format_units, parse_units
from yieldpilot.transactions.contracts import ERC20_ABI, ROUTER_ABI, resolve_token

logger = logging.getLogger(__name__)

_EVM_ADDR_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class ChainOperationError(Exception):
    """A submission was rejected before or while reaching the chain."""


class WalletNotConnected(ChainOperationError):
    pass


@dataclass(frozen=True)
class OperationResult:
    success: bool
    tx_hash: str | None = None
    error: str | None = None


class OperationHandle(ABC):
    """A submitted operation. ``tx_hash`` is known as soon as it is broadcast."""

    tx_hash: str | None = None

    @abstractmethod
    async def wait(self) -> OperationResult: ...


class ChainWallet(ABC):
    @property
    @abstractmethod
    def address(self) -> str | None:
        """Connected account address, or None when no account is available."""

    @abstractmethod
    async def approve_spend(self, token: str, spender: str, amount: int) -> OperationHandle:
        """Allow ``spender`` to move ``amount`` (fixed-point units) of ``token``."""

    @abstractmethod
    async def submit_liquidity(
        self,
        token_a: str,
        token_b: str,
        amount_a_desired: int,
        amount_b_desired: int,
        amount_a_min: int,
        amount_b_min: int,
        recipient: str,
        deadline: int,
        router: str,
    ) -> OperationHandle:
        """Call ``addLiquidity`` on ``router``."""


def validate_address(address: str) -> str:
    if not _EVM_ADDR_RE.match(address or ""):
        raise ValueError(f"Invalid EVM address: {address!r}")
    return AsyncWeb3.to_checksum_address(address)


def _token_address(token: str) -> str:
    if _EVM_ADDR_RE.match(token):
        return validate_address(token)
    resolved = resolve_token(token)
    if resolved is None:
        raise ValueError(f"Unknown token: {token!r}")
    return validate_address(resolved)


class _ReceiptHandle(OperationHandle):
    def __init__(self, w3: AsyncWeb3, tx_hash: str, timeout: float) -> None:
        self._w3 = w3
        self.tx_hash = tx_hash
        self._timeout = timeout

    async def wait(self) -> OperationResult:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(
                self.tx_hash, timeout=self._timeout
            )
        except Exception as exc:
            logger.error("Receipt wait failed for %s: %s", self.tx_hash, exc)
            return OperationResult(False, self.tx_hash, f"No receipt: {exc}")
        if receipt["status"] == 1:
            return OperationResult(True, self.tx_hash)
        return OperationResult(False, self.tx_hash, "Transaction reverted")


class Web3Wallet(ChainWallet):
    """Signs locally with the configured private key and broadcasts over JSON-RPC."""

    def __init__(
        self,
        private_key: str | None = None,
        rpc_url: str | None = None,
        chain_id: int | None = None,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        self._private_key = settings.wallet_private_key if private_key is None else private_key
        self.chain_id = chain_id or settings.chain_id
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url or settings.rpc_url))
        self._account = None

    # ── lifecycle ─────────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Load the signing account. Without a key the wallet stays disconnected."""
        if not self._private_key:
            logger.warning("WALLET_PRIVATE_KEY not set; wallet running without an account")
            return
        self._account = Account.from_key(self._private_key)
        connected = await self._w3.is_connected()
        logger.info(
            "Wallet %s on chain %d (rpc reachable: %s)",
            self._account.address, self.chain_id, connected,
        )

    # ── queries ───────────────────────────────────────────────────────────────

    @property
    def address(self) -> str | None:
        return self._account.address if self._account is not None else None

    async def get_balance(self, token: str | None = None) -> Decimal:
        if self._account is None:
            return Decimal("0")
        token = token or settings.deposit_token
        contract = self._w3.eth.contract(address=_token_address(token), abi=ERC20_ABI)
        raw = await contract.functions.balanceOf(self._account.address).call()
        return Decimal(format_units(raw, settings.token_decimals))

    async def get_allowance(self, token: str, spender: str) -> int:
        if self._account is None:
            return 0
        contract = self._w3.eth.contract(address=_token_address(token), abi=ERC20_ABI)
        return await contract.functions.allowance(
            self._account.address, validate_address(spender)
        ).call()

    # ── mutations ─────────────────────────────────────────────────────────────

    def _check_cap(self, amount: int) -> None:
        cap = parse_units(settings.max_single_deposit, settings.token_decimals)
        if amount > cap:
            raise ValueError(
                f"Amount {format_units(amount, settings.token_decimals)} exceeds "
                f"single-deposit cap {settings.max_single_deposit}"
            )

    async def _send(self, fn, request: SubmissionRequest) -> OperationHandle:
        if self._account is None:
            raise WalletNotConnected("Wallet not connected")

        try:
            await require_approval(request)
        except AuditDenied as exc:
            raise ChainOperationError(str(exc)) from exc

        try:
            sender = self._account.address
            tx = await fn.build_transaction({
                "from": sender,
                "nonce": await self._w3.eth.get_transaction_count(sender, "pending"),
                "chainId": self.chain_id,
                "gasPrice": await self._w3.eth.gas_price,
            })
            signed = self._account.sign_transaction(tx)
            raw_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            raise ChainOperationError(f"{request.kind} submission failed: {exc}") from exc

        tx_hash = AsyncWeb3.to_hex(raw_hash)
        logger.info("%s submitted | tx: %s", request.title, tx_hash)
        return _ReceiptHandle(self._w3, tx_hash, settings.receipt_timeout_seconds)

    async def approve_spend(self, token: str, spender: str, amount: int) -> OperationHandle:
        token_address = _token_address(token)
        spender = validate_address(spender)
        self._check_cap(amount)

        contract = self._w3.eth.contract(address=token_address, abi=ERC20_ABI)
        return await self._send(
            contract.functions.approve(spender, amount),
            ApproveRequest(
                token=token.upper(),
                token_address=token_address,
                spender=spender,
                amount=amount,
                decimals=settings.token_decimals,
            ),
        )

    async def submit_liquidity(
        self,
        token_a: str,
        token_b: str,
        amount_a_desired: int,
        amount_b_desired: int,
        amount_a_min: int,
        amount_b_min: int,
        recipient: str,
        deadline: int,
        router: str,
    ) -> OperationHandle:
        addr_a, addr_b = _token_address(token_a), _token_address(token_b)
        recipient = validate_address(recipient)
        router = validate_address(router)
        self._check_cap(amount_a_desired)
        self._check_cap(amount_b_desired)

        contract = self._w3.eth.contract(address=router, abi=ROUTER_ABI)
        return await self._send(
            contract.functions.addLiquidity(
                addr_a, addr_b,
                amount_a_desired, amount_b_desired,
                amount_a_min, amount_b_min,
                recipient, deadline,
            ),
            DepositRequest(
                token_a=token_a.upper(),
                token_b=token_b.upper(),
                amount_a=amount_a_desired,
                amount_b=amount_b_desired,
                min_a=amount_a_min,
                min_b=amount_b_min,
                router=router,
                recipient=recipient,
                deadline=deadline,
                decimals=settings.token_decimals,
            ),
        )
