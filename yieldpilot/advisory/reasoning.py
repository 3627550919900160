"""Reasoning service adapters — prompt in, text out."""
from __future__ import annotations

from typing import Protocol

from anthropic import AsyncAnthropic


class ReasoningService(Protocol):
    async def complete(self, prompt: str) -> str: ...


class AnthropicReasoningService:
    """Single-turn completion via the Anthropic Messages API. Errors propagate."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 1024,
        system: str | None = None,
    ) -> None:
        self._client = AsyncAnthropic(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.system = system

    async def complete(self, prompt: str) -> str:
        kwargs = {"system": self.system} if self.system else {}
        message = await self._client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
            **kwargs,
        )
        return "".join(
            block.text for block in message.content if getattr(block, "type", "") == "text"
        )
