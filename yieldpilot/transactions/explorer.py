"""Block-explorer helpers."""
from __future__ import annotations

from yieldpilot.config import settings

TESTNET_EXPLORER_URL = "https://testnet.bscscan.com"


def tx_url(tx_hash: str, testnet: bool | None = None) -> str:
    use_testnet = settings.is_testnet if testnet is None else testnet
    base = TESTNET_EXPLORER_URL if use_testnet else settings.explorer_url.rstrip("/")
    return f"{base}/tx/{tx_hash}"


def format_tx_hash(tx_hash: str) -> str:
    """``0x1234...abcd`` style short form."""
    return f"{tx_hash[:6]}...{tx_hash[-4:]}"
