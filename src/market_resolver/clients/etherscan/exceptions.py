"""Exception hierarchy for Etherscan client errors."""


class EtherscanError(Exception):
    """Base exception for all Etherscan client errors."""


class EtherscanAPIError(EtherscanError):
    """Error returned by an Etherscan API call.

    Etherscan reports most failures as HTTP 200 with ``"status": "0"`` and a
    reason in ``result``; ``rate_limited`` is set when that reason is a
    throttling message.

    Args:
        msg: Human-readable description of the error.
        status_code: HTTP status code, 0 when no response was received.
        rate_limited: Whether the API signalled a rate limit.

    """

    def __init__(self, msg: str, status_code: int, *, rate_limited: bool = False) -> None:
        """Initialize Etherscan API error.

        Args:
            msg: Human-readable description of the error.
            status_code: HTTP status code from the API response.
            rate_limited: Whether the API signalled a rate limit.

        """
        super().__init__(f"[{status_code}] {msg}")
        self.msg = msg
        self.status_code = status_code
        self.rate_limited = rate_limited
