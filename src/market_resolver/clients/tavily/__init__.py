"""Tavily web search client used by the manual review workflow."""

from market_resolver.clients.tavily.client import TavilyClient
from market_resolver.clients.tavily.exceptions import TavilyAPIError, TavilyError
from market_resolver.clients.tavily.models import SearchAnswer, SearchResult

__all__ = [
    "SearchAnswer",
    "SearchResult",
    "TavilyAPIError",
    "TavilyClient",
    "TavilyError",
]
