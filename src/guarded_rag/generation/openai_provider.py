"""OpenAI chat-completions LLM provider."""

from __future__ import annotations

from openai import AsyncOpenAI

from guarded_rag.exceptions import GenerationError


class OpenAIChatProvider:
    def __init__(self, api_key: str, model: str = "gpt-3.5-turbo") -> None:
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model

    @property
    def model_name(self) -> str:
        return self._model

    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        temperature: float = 0.1,
        max_tokens: int = 4096,
    ) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            raise GenerationError(f"OpenAI chat completion failed: {e}") from e

        if not response.choices:
            raise GenerationError("OpenAI chat completion returned no choices")
        return response.choices[0].message.content or ""
