from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── LLM ──────────────────────────────────────────────────────────────────
    # Empty key = no advisory credential; the advisory client serves its fallback.
    anthropic_api_key: str = ""
    llm_model: str = "claude-sonnet-4-6"
    llm_max_tokens: int = 1024

    # ── Opportunity aggregation ───────────────────────────────────────────────
    chain_filter: str = "Binance"
    min_tvl_usd: float = 1_000_000
    top_n: int = 8
    allowed_protocols: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["pancakeswap", "venus", "alpaca", "biswap", "thena"]
    )
    http_timeout_seconds: float = 15.0
    refresh_interval_minutes: int = 5

    # ── Chain / wallet ────────────────────────────────────────────────────────
    # mainnet: https://bsc-dataseed.binance.org/
    # testnet: https://data-seed-prebsc-1-s1.binance.org:8545/
    rpc_url: str = "https://bsc-dataseed.binance.org/"
    chain_id: int = 56
    wallet_private_key: str = ""
    explorer_url: str = "https://bscscan.com"
    router_address: str = "0x10ED43C718714eb63d5aA57B78B54704E256024E"
    deposit_token: str = "BUSD"
    default_pair: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["BNB", "BUSD"])
    slippage_percent: float = 0.5
    deadline_seconds: int = 1200
    token_decimals: int = 18
    receipt_timeout_seconds: int = 120

    # ── Safety ────────────────────────────────────────────────────────────────
    # Require human approval before every on-chain submission (approve, deposit)
    audit_mode: bool = False
    max_single_deposit: Decimal = Decimal("10000")
    audit_log_path: Path = Path("./data/audit.log")
    audit_timeout_seconds: float = 300.0

    # ── Service ───────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    api_port: int = 8400

    @field_validator("allowed_protocols", "default_pair", mode="before")
    @classmethod
    def split_csv(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("allowed_protocols")
    @classmethod
    def lower_protocols(cls, v: list[str]) -> list[str]:
        return [p.lower() for p in v]

    @property
    def is_testnet(self) -> bool:
        return self.chain_id == 97 or "testnet" in self.rpc_url or "prebsc" in self.rpc_url

    @property
    def has_llm_credential(self) -> bool:
        return bool(self.anthropic_api_key)


# Singleton: import and use `settings` everywhere
settings = Settings()
