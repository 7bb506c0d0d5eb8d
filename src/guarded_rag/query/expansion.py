"""Keyword-based query expansion to widen vector recall."""

from __future__ import annotations

import re
from dataclasses import dataclass

from guarded_rag.config.constants import (
    MIN_KEYWORD_LENGTH,
    MIN_KEYWORDS_FOR_EXPANSION,
    STOP_WORDS,
)
from guarded_rag.observability.logger import get_logger

logger = get_logger("query_expansion")


@dataclass(frozen=True)
class ExpandedQuery:
    original: str
    text: str  # what gets embedded
    keywords: tuple[str, ...]

    @property
    def expanded(self) -> bool:
        return self.text != self.original


class QueryExpander:
    def __init__(
        self,
        stop_words: frozenset[str] = STOP_WORDS,
        min_keyword_length: int = MIN_KEYWORD_LENGTH,
        min_keywords: int = MIN_KEYWORDS_FOR_EXPANSION,
    ) -> None:
        self._stop_words = stop_words
        self._min_keyword_length = min_keyword_length
        self._min_keywords = min_keywords

    def expand(self, question: str) -> ExpandedQuery:
        """Append extracted keywords to the question; never replaces it."""
        keywords = self.extract_keywords(question)
        if len(keywords) < self._min_keywords:
            return ExpandedQuery(original=question, text=question, keywords=keywords)

        text = f"{question} {' '.join(keywords)}"
        logger.debug("query_expanded", keywords=len(keywords))
        return ExpandedQuery(original=question, text=text, keywords=keywords)

    def extract_keywords(self, question: str) -> tuple[str, ...]:
        cleaned = self._normalize(question)
        if not cleaned:
            return ()
        return tuple(
            word
            for word in cleaned.split(" ")
            if len(word) >= self._min_keyword_length and word not in self._stop_words
        )

    @staticmethod
    def _normalize(text: str) -> str:
        text = re.sub(r"[^a-z0-9\s]", " ", text.lower())
        text = re.sub(r"\s+", " ", text).strip()
        return text
