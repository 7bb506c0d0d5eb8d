"""Answer generation from the assembled context and the original question."""

from __future__ import annotations

from guarded_rag.generation.prompt_templates import (
    ANSWER_GENERATION_PROMPT,
    ANSWER_GENERATION_SYSTEM,
)
from guarded_rag.observability.logger import get_logger
from guarded_rag.protocols.llm import LLMProvider

logger = get_logger("generation")


class AnswerGenerator:
    def __init__(
        self,
        llm: LLMProvider,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> None:
        self._llm = llm
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def model_name(self) -> str:
        return self._llm.model_name

    async def generate(self, context: str, question: str) -> str:
        prompt = ANSWER_GENERATION_PROMPT.format(context=context, question=question)

        answer = await self._llm.generate(
            prompt,
            system=ANSWER_GENERATION_SYSTEM,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

        logger.info(
            "generated_answer",
            question_len=len(question),
            context_len=len(context),
            answer_len=len(answer),
        )
        return answer
