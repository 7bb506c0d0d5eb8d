"""Tests for LLM relevance scoring and reply parsing."""

from __future__ import annotations

import pytest

from conftest import FakeLLM
from guarded_rag.config.constants import NEUTRAL_RELEVANCE_SCORE, PASSAGE_CHAR_CAP
from guarded_rag.exceptions import GenerationError
from guarded_rag.retrieval.relevance_scorer import LLMRelevanceScorer


@pytest.mark.parametrize(
    "reply,expected",
    [
        ("8", 8.0),
        ("Score: 7.5", 7.5),
        ("6/10", 6.0),
        ("15", 10.0),
        (".5", 0.5),
        ("0", 0.0),
        ("This passage is relevant", 7.0),
        ("Yes", 7.0),
        ("good match", 7.0),
        ("not useful", 3.0),
    ],
)
def test_parse_score(reply, expected):
    assert LLMRelevanceScorer.parse_score(reply) == expected


async def test_score_is_normalized():
    scorer = LLMRelevanceScorer(FakeLLM(reply="8"))
    assert await scorer.score("question", "passage") == pytest.approx(0.8)


async def test_judge_marks_successful_calls():
    judgment = await LLMRelevanceScorer(FakeLLM(reply="3")).judge("q", "p")
    assert judgment.score == pytest.approx(0.3)
    assert judgment.fallback is False


async def test_provider_error_yields_neutral_score():
    scorer = LLMRelevanceScorer(FakeLLM(error=GenerationError("provider down")))
    judgment = await scorer.judge("q", "p")
    assert judgment.score == NEUTRAL_RELEVANCE_SCORE
    assert judgment.fallback is True


async def test_unexpected_error_yields_neutral_score():
    scorer = LLMRelevanceScorer(FakeLLM(error=ValueError("bad payload")))
    assert await scorer.score("q", "p") == NEUTRAL_RELEVANCE_SCORE


@pytest.mark.parametrize("reply", ["", "   \n"])
async def test_empty_reply_yields_neutral_score(reply):
    judgment = await LLMRelevanceScorer(FakeLLM(reply=reply)).judge("q", "p")
    assert judgment.score == NEUTRAL_RELEVANCE_SCORE
    assert judgment.fallback is True


async def test_timeout_yields_neutral_score():
    scorer = LLMRelevanceScorer(FakeLLM(reply="9", delay=0.5), timeout_seconds=0.01)
    judgment = await scorer.judge("q", "p")
    assert judgment.score == NEUTRAL_RELEVANCE_SCORE
    assert judgment.fallback is True


async def test_long_passages_are_truncated_in_prompt():
    llm = FakeLLM(reply="5")
    passage = "a" * PASSAGE_CHAR_CAP + "TAIL"
    await LLMRelevanceScorer(llm).score("Which tail?", passage)

    prompt = llm.prompts[0]
    assert "Which tail?" in prompt
    assert "a" * PASSAGE_CHAR_CAP + "..." in prompt
    assert "TAIL" not in prompt
