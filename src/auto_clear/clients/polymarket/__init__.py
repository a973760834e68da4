"""Polymarket CLOB client used as the exchange behind the clearing engine."""

from auto_clear.clients.polymarket.client import PolymarketClient
from auto_clear.clients.polymarket.exceptions import (
    AuthenticationRequiredError,
    OrderRejectedError,
    PolymarketAPIError,
    PolymarketError,
)
from auto_clear.clients.polymarket.models import (
    Balance,
    Market,
    MarketToken,
    OrderBook,
    OrderLevel,
    OrderRequest,
    OrderResponse,
)

__all__ = [
    "AuthenticationRequiredError",
    "Balance",
    "Market",
    "MarketToken",
    "OrderBook",
    "OrderLevel",
    "OrderRejectedError",
    "OrderRequest",
    "OrderResponse",
    "PolymarketAPIError",
    "PolymarketClient",
    "PolymarketError",
]
