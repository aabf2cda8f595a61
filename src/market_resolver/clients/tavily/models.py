"""Typed data models for Tavily search responses."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SearchResult:
    """One web source returned with a search answer.

    Args:
        title: Page title.
        url: Page URL.

    """

    title: str
    url: str


@dataclass(frozen=True)
class SearchAnswer:
    """Generated answer plus the sources it was drawn from.

    Args:
        query: The query that was sent.
        answer: Generated answer text, empty when none was produced.
        results: Sources in relevance order.

    """

    query: str
    answer: str
    results: tuple[SearchResult, ...]
