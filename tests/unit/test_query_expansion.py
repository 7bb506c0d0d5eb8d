"""Tests for keyword query expansion."""

from __future__ import annotations

from guarded_rag.query.expansion import QueryExpander


def test_keywords_are_appended_to_question():
    question = "What is the refund policy for opened items?"
    expanded = QueryExpander().expand(question)

    assert expanded.keywords == ("refund", "policy", "opened", "items")
    assert expanded.text == f"{question} refund policy opened items"
    assert expanded.expanded
    assert expanded.original == question


def test_too_few_keywords_skips_expansion():
    expanded = QueryExpander().expand("What is it?")
    assert expanded.text == "What is it?"
    assert not expanded.expanded


def test_single_keyword_skips_expansion():
    expanded = QueryExpander().expand("Where are the invoices?")
    assert expanded.keywords == ("invoices",)
    assert expanded.text == "Where are the invoices?"


def test_punctuation_and_case_are_normalized():
    keywords = QueryExpander().extract_keywords("Shipping-Costs,  to   CANADA?!")
    assert keywords == ("shipping", "costs", "canada")


def test_short_words_are_dropped():
    keywords = QueryExpander().extract_keywords("is an ox in my vat or not")
    assert keywords == ("vat", "not")


def test_empty_question():
    assert QueryExpander().extract_keywords("?!") == ()
    assert QueryExpander().expand("").text == ""
