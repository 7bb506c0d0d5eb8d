"""LLM relevance judgment for a single (question, passage) pair.

Never raises on provider trouble: timeouts, provider errors and empty replies
all yield the neutral score so one bad call cannot abort a rerank batch.
"""

from __future__ import annotations

import asyncio
import re

from guarded_rag.config.constants import (
    LEXICAL_NEGATIVE_SCORE,
    LEXICAL_POSITIVE_CUES,
    LEXICAL_POSITIVE_SCORE,
    NEUTRAL_RELEVANCE_SCORE,
    PASSAGE_CHAR_CAP,
    RELEVANCE_SCALE_MAX,
    SCORER_MAX_TOKENS,
    SCORER_TEMPERATURE,
)
from guarded_rag.exceptions import ScoringError
from guarded_rag.generation.prompt_templates import (
    RELEVANCE_SCORING_PROMPT,
    RELEVANCE_SCORING_SYSTEM,
    truncate_passage,
)
from guarded_rag.models.domain import RelevanceJudgment
from guarded_rag.protocols.llm import LLMProvider
from guarded_rag.observability.logger import get_logger

logger = get_logger("relevance_scorer")

_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")


class LLMRelevanceScorer:
    def __init__(self, llm: LLMProvider, timeout_seconds: float = 10.0) -> None:
        self._llm = llm
        self._timeout = timeout_seconds

    async def score(self, question: str, passage: str) -> float:
        """Relevance of ``passage`` to ``question`` in [0, 1]."""
        judgment = await self.judge(question, passage)
        return judgment.score

    async def judge(self, question: str, passage: str) -> RelevanceJudgment:
        prompt = RELEVANCE_SCORING_PROMPT.format(
            question=question,
            passage=truncate_passage(passage, PASSAGE_CHAR_CAP),
        )
        try:
            reply = await asyncio.wait_for(
                self._llm.generate(
                    prompt,
                    system=RELEVANCE_SCORING_SYSTEM,
                    temperature=SCORER_TEMPERATURE,
                    max_tokens=SCORER_MAX_TOKENS,
                ),
                timeout=self._timeout,
            )
            if not isinstance(reply, str) or not reply.strip():
                raise ScoringError("Empty relevance judgment")
        except Exception as e:
            logger.debug(
                "relevance_scoring_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            return RelevanceJudgment(score=NEUTRAL_RELEVANCE_SCORE, fallback=True)

        raw = self.parse_score(reply)
        return RelevanceJudgment(score=raw / RELEVANCE_SCALE_MAX, fallback=False)

    @staticmethod
    def parse_score(reply: str) -> float:
        """Extract a 0-10 score from a model reply.

        Takes the first number in the reply and clamps it; replies with no
        number fall back to a coarse lexical cue.
        """
        match = _NUMBER.search(reply)
        if match:
            value = float(match.group())
            return max(0.0, min(RELEVANCE_SCALE_MAX, value))

        lower = reply.lower()
        if any(cue in lower for cue in LEXICAL_POSITIVE_CUES):
            return LEXICAL_POSITIVE_SCORE
        return LEXICAL_NEGATIVE_SCORE
