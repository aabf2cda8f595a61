"""Exceptions for the Tavily search client."""


class TavilyError(Exception):
    """Base exception for Tavily errors."""


class TavilyAPIError(TavilyError):
    """API error with HTTP status code and message."""

    def __init__(self, msg: str, status_code: int) -> None:
        """Initialize Tavily API error.

        Args:
            msg: Human-readable error message.
            status_code: HTTP status code, 0 when no response was received.

        """
        super().__init__(f"[{status_code}] {msg}")
        self.msg = msg
        self.status_code = status_code
