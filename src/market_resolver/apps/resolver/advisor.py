"""Search-backed recommendations for markets that need a human decision.

Political and event questions have no oracle. For those an operator asks
the advisor, which sends the question to Tavily, scores the generated
answer for YES and NO indicators, and suggests a side only when one
clearly outweighs the other. The suggestion is advisory: the operator
makes the final call, which is then committed through the coordinator's
guarded commit. The advisor is never part of an automatic pass.
"""

import logging
import re
from collections.abc import Callable
from datetime import UTC, date, datetime

from market_resolver.apps.resolver.models import Confidence, Recommendation
from market_resolver.clients.tavily import TavilyClient
from market_resolver.core.models import Market, Side

logger = logging.getLogger(__name__)

YES_KEYWORDS: tuple[str, ...] = (
    "yes",
    "confirmed",
    "happened",
    "occurred",
    "did happen",
    "has happened",
    "took place",
    "was confirmed",
    "struck",
    "attacked",
)

NO_KEYWORDS: tuple[str, ...] = (
    "no",
    "not",
    "hasn't",
    "hasn't happened",
    "did not",
    "has not",
    "never",
    "denied",
    "no evidence",
    "unconfirmed",
    "no confirmed",
)

_MIN_MARGIN = 1
_HIGH_CONFIDENCE_SCORE = 3


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![\w']){re.escape(keyword)}(?![\w'])", re.IGNORECASE)


_YES_PATTERNS = tuple(_keyword_pattern(k) for k in YES_KEYWORDS)
_NO_PATTERNS = tuple(_keyword_pattern(k) for k in NO_KEYWORDS)


def score_answer(answer: str) -> tuple[int, int]:
    """Count the distinct YES and NO indicators that appear in ``answer``.

    Keywords match whole words only, so "no" does not match "know".

    Returns:
        ``(yes_score, no_score)``.

    """
    yes_score = sum(1 for p in _YES_PATTERNS if p.search(answer))
    no_score = sum(1 for p in _NO_PATTERNS if p.search(answer))
    return yes_score, no_score


def suggest(yes_score: int, no_score: int) -> tuple[Side | None, Confidence]:
    """Turn keyword scores into a suggested side and a confidence level.

    A side is suggested only when it leads by more than one point; the
    suggestion is high confidence when the leading score exceeds three.
    """
    if yes_score > no_score + _MIN_MARGIN:
        high = yes_score > _HIGH_CONFIDENCE_SCORE
        return Side.YES, Confidence.HIGH if high else Confidence.MEDIUM
    if no_score > yes_score + _MIN_MARGIN:
        high = no_score > _HIGH_CONFIDENCE_SCORE
        return Side.NO, Confidence.HIGH if high else Confidence.MEDIUM
    return None, Confidence.LOW


def _utc_today() -> date:
    return datetime.now(UTC).date()


class ReviewAdvisor:
    """Produce a ``Recommendation`` for a market from a web search.

    Args:
        client: Tavily search client.
        max_results: Maximum number of sources to request.
        today: Returns the date quoted in the search query.

    """

    def __init__(
        self,
        client: TavilyClient,
        *,
        max_results: int = 5,
        today: Callable[[], date] = _utc_today,
    ) -> None:
        """Initialize the advisor."""
        self._client = client
        self._max_results = max_results
        self._today = today

    def build_query(self, question: str) -> str:
        """Phrase a market question as a status query for today."""
        return f"{question} - Did this happen? Current status as of {self._today().isoformat()}"

    async def recommend(self, market: Market) -> Recommendation:
        """Search for the market's question and score the answer.

        Raises:
            TavilyAPIError: When the search request fails.

        """
        query = self.build_query(market.question)
        logger.info("Reviewing market %d: %s", market.market_id, query)
        result = await self._client.search(query, max_results=self._max_results)
        yes_score, no_score = score_answer(result.answer)
        suggestion, confidence = suggest(yes_score, no_score)
        logger.info(
            "Market %d review: yes=%d no=%d suggestion=%s (%s)",
            market.market_id,
            yes_score,
            no_score,
            suggestion.value if suggestion else "none",
            confidence.value,
        )
        return Recommendation(
            market_id=market.market_id,
            question=market.question,
            suggestion=suggestion,
            confidence=confidence,
            answer=result.answer,
            sources=result.results,
            yes_score=yes_score,
            no_score=no_score,
        )
