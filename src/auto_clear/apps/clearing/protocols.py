"""Collaborator interfaces the clearing engine depends on.

Decouple the reconciliation driver from the concrete exchange and
notification channels.  ``PolymarketExchange`` implements every exchange
protocol; tests substitute ``AsyncMock`` objects.
"""

from decimal import Decimal
from typing import Protocol, runtime_checkable

from auto_clear.apps.clearing.models import (
    ClosedOrder,
    OpenOrder,
    OrderEvent,
    PlacedOrder,
    TrackedOrder,
)
from auto_clear.clients.polymarket.models import OrderBook
from auto_clear.core.models import Outcome


@runtime_checkable
class OrderBookSource(Protocol):
    """Provide the live order book for one outcome of the topic."""

    async def get_order_book(self, position: Outcome) -> OrderBook:
        """Return the book with bids sorted descending and asks ascending.

        Raises:
            MarketDataError: When the book cannot be fetched.

        """
        ...


@runtime_checkable
class OrderQuerySource(Protocol):
    """Provide the trader's open orders and the closed-order feed."""

    async def get_open_orders(self) -> list[OpenOrder]:
        """Return the trader's resting orders on the topic.

        Raises:
            MarketDataError: When the order list cannot be fetched.

        """
        ...

    async def get_closed_orders(self, order_ids: list[str]) -> list[ClosedOrder]:
        """Return closed-order records for the given order IDs.

        IDs the exchange still reports as live are omitted.

        Args:
            order_ids: Orders to look up.

        Raises:
            MarketDataError: When the feed cannot be fetched.

        """
        ...


@runtime_checkable
class BalanceSource(Protocol):
    """Provide the trader's collateral balance."""

    async def get_balance(self) -> Decimal:
        """Return the available USDC balance.

        Raises:
            MarketDataError: When the balance cannot be fetched.

        """
        ...


@runtime_checkable
class ExchangeClient(Protocol):
    """Submit limit orders for one outcome of the topic."""

    async def sell(
        self, position: Outcome, limit_price_pct: Decimal, shares: Decimal
    ) -> PlacedOrder:
        """Place a limit sell and return it as submitted.

        Args:
            position: Outcome token to sell.
            limit_price_pct: Limit price on the 0-100 percentage scale.
            shares: Number of shares to sell.

        Raises:
            SubmissionError: When the exchange rejects the order.

        """
        ...

    async def buy(
        self, position: Outcome, limit_price_pct: Decimal, shares: Decimal
    ) -> PlacedOrder:
        """Place a limit buy and return it as submitted.

        Args:
            position: Outcome token to buy.
            limit_price_pct: Limit price on the 0-100 percentage scale.
            shares: Number of shares to buy.

        Raises:
            SubmissionError: When the exchange rejects the order.

        """
        ...


@runtime_checkable
class OrderClearer(Protocol):
    """Place the reverse order for a tracked order that has just filled."""

    async def clear(self, order: TrackedOrder) -> TrackedOrder:
        """Drive a ``filled`` order to ``cleared`` or ``error``."""
        ...


@runtime_checkable
class EventSubscriber(Protocol):
    """Receive order events emitted by the snapshot differ."""

    async def handle(self, event: OrderEvent) -> None:
        """Process one event; failures are logged by the dispatcher."""
        ...
