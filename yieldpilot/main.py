"""yieldpilot entrypoint.

Wires together all subsystems and starts:
  1. Opportunity scanner (DeFiLlama + PancakeSwap) with a periodic refresh
  2. Advisory client (Anthropic, or the fallback advisory without a key)
  3. Web3 wallet and the transaction orchestrator
  4. FastAPI server
"""
from __future__ import annotations

import asyncio
import logging
import signal
import sys

import uvicorn
from rich.logging import RichHandler

from yieldpilot import api
from yieldpilot.advisory.client import AdvisoryClient, AdvisoryConfig
from yieldpilot.config import settings
from yieldpilot.finance.wallet import Web3Wallet
from yieldpilot.markets.scanner import OpportunityScanner
from yieldpilot.transactions.orchestrator import TransactionOrchestrator

# ── logging ───────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True)],
)
logger = logging.getLogger("yieldpilot")

app = api.create_app()


# ── startup ───────────────────────────────────────────────────────────────────


async def startup() -> OpportunityScanner:
    logger.info("=" * 60)
    logger.info("  yieldpilot v%s", api.VERSION)
    logger.info("  Chain:          %d (%s)", settings.chain_id, "testnet" if settings.is_testnet else "mainnet")
    logger.info("  RPC:            %s", settings.rpc_url)
    logger.info("  Refresh:        %d min", settings.refresh_interval_minutes)
    logger.info("  Audit mode:     %s", settings.audit_mode)
    logger.info("=" * 60)

    wallet = Web3Wallet()
    await wallet.connect()
    logger.info("Wallet: %s", wallet.address or "not connected")

    scanner = OpportunityScanner()
    advisory = AdvisoryClient(AdvisoryConfig.from_settings())
    if not advisory.config.has_credential:
        logger.warning("ANTHROPIC_API_KEY not set; advisory will serve the fallback")
    orchestrator = TransactionOrchestrator(wallet)

    api.setup(scanner=scanner, advisory=advisory, orchestrator=orchestrator)
    return scanner


async def run_server() -> None:
    config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=settings.api_port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    await server.serve()


async def main() -> None:
    scanner = await startup()

    tasks = [
        asyncio.create_task(scanner.run_periodic(), name="refresh-loop"),
        asyncio.create_task(run_server(), name="api-server"),
    ]

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: [t.cancel() for t in tasks])

    try:
        await asyncio.gather(*tasks)
    except asyncio.CancelledError:
        logger.info("Shutting down gracefully...")
    finally:
        for task in tasks:
            task.cancel()
        logger.info("Goodbye.")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    run()
