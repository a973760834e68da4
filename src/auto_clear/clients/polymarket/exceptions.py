"""Errors raised by the Polymarket client.

Every failure surfaces as a ``PolymarketAPIError`` carrying the HTTP
status code.  Two subclasses mark the cases the clearing engine reports
differently: a trading call made without credentials, and an order the
CLOB accepted over HTTP but refused to place.
"""

_STATUS_UNAUTHORIZED = 401
_STATUS_BAD_REQUEST = 400


class PolymarketError(Exception):
    """Base exception for all Polymarket client errors."""


class PolymarketAPIError(PolymarketError):
    """Error returned by a Polymarket API call.

    Args:
        msg: Human-readable description of the error.
        status_code: HTTP status code from the API response, or ``0`` when
            the payload could not be parsed.

    """

    def __init__(self, msg: str, status_code: int) -> None:
        """Initialize Polymarket API error."""
        super().__init__(f"[{status_code}] {msg}")
        self.msg = msg
        self.status_code = status_code


class AuthenticationRequiredError(PolymarketAPIError):
    """Raise when a trading endpoint is called on a read-only client."""

    def __init__(self) -> None:
        """Initialize with the 401 status the CLOB uses for missing credentials."""
        super().__init__(
            msg="Authentication required. Provide a private key to enable trading.",
            status_code=_STATUS_UNAUTHORIZED,
        )


class OrderRejectedError(PolymarketAPIError):
    """Raise when the CLOB answers an order request without an order ID.

    Args:
        reason: Error message returned by the CLOB (e.g. not enough balance).

    """

    def __init__(self, reason: str) -> None:
        """Initialize the rejection with the CLOB's reason."""
        super().__init__(msg=f"Order rejected: {reason}", status_code=_STATUS_BAD_REQUEST)
        self.reason = reason
