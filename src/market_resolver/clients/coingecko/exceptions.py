"""Exception hierarchy for CoinGecko client errors."""

_HTTP_TOO_MANY_REQUESTS = 429


class CoinGeckoError(Exception):
    """Base exception for all CoinGecko client errors."""


class CoinGeckoAPIError(CoinGeckoError):
    """Error returned by a CoinGecko API call.

    Carry a human-readable message and an HTTP status code. CoinGecko
    sometimes reports throttling inside a 200 response body; those errors
    are raised with status code 429 as well.

    Args:
        msg: Human-readable description of the error.
        status_code: HTTP status code, 429 for rate limits, 0 when no
            response was received.

    """

    def __init__(self, msg: str, status_code: int) -> None:
        """Initialize CoinGecko API error.

        Args:
            msg: Human-readable description of the error.
            status_code: HTTP status code from the API response.

        """
        super().__init__(f"[{status_code}] {msg}")
        self.msg = msg
        self.status_code = status_code

    @property
    def rate_limited(self) -> bool:
        """Return whether the error is a rate-limit signal."""
        return self.status_code == _HTTP_TOO_MANY_REQUESTS
