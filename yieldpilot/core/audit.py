"""Operator sign-off for on-chain submissions.

With AUDIT_MODE=true the wallet describes each token approval or liquidity
deposit as a typed request before signing it. The request is rendered with
human-readable amounts, the slippage floor and the router deadline, and is
only broadcast once an operator accepts it: at the terminal when stdin is a
TTY, otherwise through ``POST /audit/approvals/{id}``. Every decision is
appended to ``settings.audit_log_path`` as one JSON line.
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar, Union

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from yieldpilot.config import settings
from yieldpilot.transactions.amounts import DEFAULT_DECIMALS, format_units
from yieldpilot.transactions.explorer import format_tx_hash

logger = logging.getLogger(__name__)
_console = Console()


class AuditDenied(Exception):
    """The operator declined, or did not answer in time."""


@dataclass(frozen=True)
class ApproveRequest:
    token: str
    token_address: str
    spender: str
    amount: int
    decimals: int = DEFAULT_DECIMALS

    kind: ClassVar[str] = "approve"
    risk: ClassVar[str] = "medium"

    @property
    def title(self) -> str:
        return (
            f"Approve {format_units(self.amount, self.decimals)} {self.token} "
            f"for {format_tx_hash(self.spender)}"
        )

    def rows(self) -> list[tuple[str, str]]:
        return [
            ("Token", f"{self.token}  {self.token_address}"),
            ("Spender", self.spender),
            ("Allowance", format_units(self.amount, self.decimals)),
        ]


@dataclass(frozen=True)
class DepositRequest:
    token_a: str
    token_b: str
    amount_a: int
    amount_b: int
    min_a: int
    min_b: int
    router: str
    recipient: str
    deadline: int
    decimals: int = DEFAULT_DECIMALS

    kind: ClassVar[str] = "deposit"
    risk: ClassVar[str] = "high"

    @property
    def slippage_percent(self) -> Decimal:
        """Tolerance implied by ``min_a`` relative to ``amount_a``."""
        if not self.amount_a:
            return Decimal(0)
        floor = Decimal(self.min_a) * 100 / Decimal(self.amount_a)
        return (Decimal(100) - floor).quantize(Decimal("0.01"))

    @property
    def title(self) -> str:
        return (
            f"Add liquidity {format_units(self.amount_a, self.decimals)} {self.token_a} / "
            f"{format_units(self.amount_b, self.decimals)} {self.token_b}"
        )

    def rows(self) -> list[tuple[str, str]]:
        units = lambda v: format_units(v, self.decimals)  # noqa: E731
        expires = datetime.fromtimestamp(self.deadline, tz=timezone.utc)
        return [
            ("Pair", f"{self.token_a} / {self.token_b}"),
            ("Desired", f"{units(self.amount_a)} / {units(self.amount_b)}"),
            ("Minimum", f"{units(self.min_a)} / {units(self.min_b)}  ({self.slippage_percent}% slippage)"),
            ("Router", self.router),
            ("Recipient", self.recipient),
            ("Deadline", expires.isoformat(timespec="seconds")),
        ]


SubmissionRequest = Union[ApproveRequest, DepositRequest]


def to_record(request: SubmissionRequest) -> dict:
    """JSON-safe view; fixed-point integers become strings so no client rounds them."""
    fields = {k: str(v) if isinstance(v, int) else v for k, v in asdict(request).items()}
    return {"kind": request.kind, "risk": request.risk, "title": request.title, **fields}


class ApprovalQueue:
    """Submissions parked until an operator decides over HTTP."""

    def __init__(self) -> None:
        self._waiting: dict[str, tuple[SubmissionRequest, asyncio.Future[bool]]] = {}

    def park(self, request: SubmissionRequest) -> tuple[str, asyncio.Future[bool]]:
        approval_id = uuid.uuid4().hex
        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._waiting[approval_id] = (request, future)
        return approval_id, future

    def discard(self, approval_id: str) -> None:
        self._waiting.pop(approval_id, None)

    def pending(self) -> list[dict]:
        return [
            {"id": approval_id, **to_record(request)}
            for approval_id, (request, _) in list(self._waiting.items())
        ]

    def resolve(self, approval_id: str, approved: bool) -> bool:
        """Returns False for an unknown or already-decided id."""
        entry = self._waiting.pop(approval_id, None)
        if entry is None:
            return False
        _, future = entry
        if not future.done():
            future.set_result(approved)
        return True


approvals = ApprovalQueue()


def _stdin_is_tty() -> bool:
    try:
        return sys.stdin.isatty()
    except (AttributeError, ValueError):
        return False


def _panel(request: SubmissionRequest) -> Panel:
    color = "red" if request.risk == "high" else "yellow"
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold dim", no_wrap=True)
    table.add_column()
    network = "testnet" if settings.is_testnet else "mainnet"
    table.add_row("Chain", f"{settings.chain_id} ({network})")
    for label, value in request.rows():
        table.add_row(label, value)
    return Panel(table, title=f"[bold]{request.title}[/bold]", title_align="left", border_style=color)


def _append_log(request: SubmissionRequest, approved: bool, channel: str) -> None:
    entry = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "approved": approved,
        "channel": channel,
        **to_record(request),
    }
    path = settings.audit_log_path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as exc:
        logger.warning("Audit log write failed: %s", exc)


async def _ask_terminal() -> bool:
    try:
        return await asyncio.to_thread(
            Confirm.ask, "  Sign and broadcast?", console=_console, default=False
        )
    except (EOFError, KeyboardInterrupt):
        return False


async def _ask_api(request: SubmissionRequest) -> bool:
    approval_id, future = approvals.park(request)
    logger.info("[AUDIT] Awaiting decision %s: %s", approval_id[:8], request.title)
    try:
        return await asyncio.wait_for(future, timeout=settings.audit_timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("[AUDIT] No decision within %ss: %s", settings.audit_timeout_seconds, request.title)
        return False
    finally:
        approvals.discard(approval_id)


async def require_approval(request: SubmissionRequest) -> None:
    """Block until the operator accepts ``request``. No-op outside audit mode."""
    if not settings.audit_mode:
        return

    _console.print(_panel(request))
    if _stdin_is_tty():
        channel, approved = "terminal", await _ask_terminal()
    else:
        channel, approved = "api", await _ask_api(request)
    _append_log(request, approved, channel)

    if not approved:
        logger.warning("[AUDIT] Declined (%s): %s", channel, request.title)
        raise AuditDenied(f"Operator denied: {request.title}")
    logger.info("[AUDIT] Approved (%s): %s", channel, request.title)
