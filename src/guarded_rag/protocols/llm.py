"""Protocol for LLM providers (answer generation and relevance scoring backend)."""

from __future__ import annotations

from typing import Protocol


class LLMProvider(Protocol):
    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> str: ...

    @property
    def model_name(self) -> str: ...
