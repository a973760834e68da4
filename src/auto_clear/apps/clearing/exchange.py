"""Polymarket implementation of the clearing engine's exchange protocols.

Bind one topic (a CLOB condition ID) to its YES and NO tokens and expose
order books, the trader's open orders, the closed-order feed, the USDC
balance, and limit order submission in the engine's vocabulary:
percentage prices, ``Outcome`` positions and typed ``MarketDataError`` /
``SubmissionError`` failures.
"""

import logging
from decimal import ROUND_DOWN, ROUND_UP, Decimal

import httpx

from auto_clear.apps.clearing.exceptions import MarketDataError, SubmissionError
from auto_clear.apps.clearing.models import (
    ClosedOrder,
    ClosedOrderStatus,
    OpenOrder,
    PlacedOrder,
)
from auto_clear.clients.polymarket.client import PolymarketClient
from auto_clear.clients.polymarket.exceptions import OrderRejectedError, PolymarketAPIError
from auto_clear.clients.polymarket.models import (
    Market,
    OrderBook,
    OrderRequest,
    OrderResponse,
)
from auto_clear.core.models import HUNDRED, ZERO, Outcome, Side

logger = logging.getLogger(__name__)

_MIN_TOKENS = 2
_DEFAULT_TICK_SIZE = "0.01"
_STATUS_PREFIX = "ORDER_STATUS_"

# CLOB order statuses that mean the order has left the book.
_CLOSED_STATUSES: dict[str, ClosedOrderStatus] = {
    "MATCHED": ClosedOrderStatus.FILLED,
    "CANCELED": ClosedOrderStatus.CANCELLED,
    "CANCELLED": ClosedOrderStatus.CANCELLED,
    "CANCELED_MARKET_RESOLVED": ClosedOrderStatus.CANCELLED,
    "UNMATCHED": ClosedOrderStatus.FAILED,
    "INVALID": ClosedOrderStatus.FAILED,
}


def _normalize_status(status: str) -> str:
    """Upper-case a CLOB status and drop the ``ORDER_STATUS_`` prefix."""
    upper = status.strip().upper()
    return upper.removeprefix(_STATUS_PREFIX)


class PolymarketExchange:
    """Exchange adapter for a single Polymarket topic.

    Args:
        client: Authenticated Polymarket client.
        market: Market metadata with at least two outcome tokens.
        tick_size: Minimum price increment used for submitted orders.

    Raises:
        ValueError: If the market has fewer than two tokens.

    """

    def __init__(
        self,
        client: PolymarketClient,
        market: Market,
        tick_size: str = _DEFAULT_TICK_SIZE,
    ) -> None:
        """Initialize the adapter and resolve the YES/NO token IDs."""
        if len(market.tokens) < _MIN_TOKENS:
            msg = f"Market {market.condition_id} has fewer than 2 tokens"
            raise ValueError(msg)
        self._client = client
        self.market = market
        self._tick = Decimal(tick_size)
        self._tick_size = tick_size
        self._token_ids = _resolve_tokens(market)
        self._outcomes = {token_id: outcome for outcome, token_id in self._token_ids.items()}

    @classmethod
    async def for_topic(
        cls,
        client: PolymarketClient,
        condition_id: str,
        tick_size: str = _DEFAULT_TICK_SIZE,
    ) -> "PolymarketExchange":
        """Fetch the market for ``condition_id`` and build an adapter for it.

        Raises:
            MarketDataError: If the market cannot be fetched or is not binary.

        """
        try:
            market = await client.get_market(condition_id)
            return cls(client, market, tick_size)
        except (PolymarketAPIError, httpx.HTTPError, ValueError) as exc:
            msg = f"Cannot load topic {condition_id}: {exc}"
            raise MarketDataError(msg) from exc

    @property
    def topic_id(self) -> str:
        """Condition ID of the bound market."""
        return self.market.condition_id

    def token_id(self, position: Outcome) -> str:
        """Return the CLOB token ID for ``position``."""
        return self._token_ids[position]

    async def get_order_book(self, position: Outcome) -> OrderBook:
        """Fetch the live book for one outcome.

        Raises:
            MarketDataError: When the CLOB call fails.

        """
        try:
            return await self._client.get_order_book(self.token_id(position))
        except (PolymarketAPIError, httpx.HTTPError) as exc:
            msg = f"Cannot fetch {position.value} order book: {exc}"
            raise MarketDataError(msg) from exc

    async def get_open_orders(self) -> list[OpenOrder]:
        """Fetch the trader's resting orders on this topic.

        Orders on tokens outside this market are ignored.

        Raises:
            MarketDataError: When the CLOB call fails.

        """
        try:
            responses = await self._client.get_open_orders(market=self.topic_id)
        except (PolymarketAPIError, httpx.HTTPError) as exc:
            msg = f"Cannot fetch open orders: {exc}"
            raise MarketDataError(msg) from exc

        orders: list[OpenOrder] = []
        for response in responses:
            outcome = self._outcomes.get(response.token_id)
            if outcome is None:
                logger.debug("Ignoring order %s on foreign token", response.order_id)
                continue
            try:
                side = Side.parse(response.side)
            except ValueError:
                logger.warning("Ignoring order %s with side %r", response.order_id, response.side)
                continue
            orders.append(
                OpenOrder(
                    order_id=response.order_id,
                    side=side,
                    outcome=outcome,
                    price=response.price,
                    amount=response.size,
                    filled=response.filled,
                )
            )
        return orders

    async def get_closed_orders(self, order_ids: list[str]) -> list[ClosedOrder]:
        """Look up each order and return the ones that have left the book.

        Notional values are ``size * price``: ``size_matched`` for the
        filled side and ``original_size`` for the total.  Orders that are
        still live, or unknown to the CLOB, are omitted.

        Raises:
            MarketDataError: When a CLOB call fails.

        """
        closed: list[ClosedOrder] = []
        for order_id in order_ids:
            try:
                response = await self._client.get_order(order_id)
            except (PolymarketAPIError, httpx.HTTPError) as exc:
                msg = f"Cannot fetch order {order_id}: {exc}"
                raise MarketDataError(msg) from exc
            if response is None:
                logger.warning("Order %s is unknown to the exchange", order_id)
                continue
            record = _to_closed_order(response)
            if record is not None:
                closed.append(record)
        return closed

    async def get_balance(self) -> Decimal:
        """Fetch the available USDC balance.

        Raises:
            MarketDataError: When the CLOB call fails.

        """
        try:
            balance = await self._client.get_balance("COLLATERAL")
        except (PolymarketAPIError, httpx.HTTPError) as exc:
            msg = f"Cannot fetch balance: {exc}"
            raise MarketDataError(msg) from exc
        return balance.balance

    async def sell(
        self, position: Outcome, limit_price_pct: Decimal, shares: Decimal
    ) -> PlacedOrder:
        """Place a GTC limit sell; the price is rounded up to the tick.

        Raises:
            SubmissionError: When the CLOB rejects the order.

        """
        return await self._place(Side.SELL, position, limit_price_pct, shares)

    async def buy(
        self, position: Outcome, limit_price_pct: Decimal, shares: Decimal
    ) -> PlacedOrder:
        """Place a GTC limit buy; the price is rounded down to the tick.

        Raises:
            SubmissionError: When the CLOB rejects the order.

        """
        return await self._place(Side.BUY, position, limit_price_pct, shares)

    async def cancel(self, order_id: str) -> None:
        """Cancel one of the trader's resting orders.

        Raises:
            SubmissionError: When the CLOB refuses or fails the cancellation.

        """
        try:
            response = await self._client.cancel_order(order_id)
        except (PolymarketAPIError, httpx.HTTPError) as exc:
            msg = f"Cancel {order_id} failed: {exc}"
            raise SubmissionError(msg) from exc
        refused = response.get("not_canceled") or {}
        if order_id in refused:
            msg = f"Cancel {order_id} rejected: {refused[order_id]}"
            raise SubmissionError(msg)
        logger.info("Cancelled order %s", order_id)

    async def _place(
        self, side: Side, position: Outcome, limit_price_pct: Decimal, shares: Decimal
    ) -> PlacedOrder:
        """Submit a limit order and return it as placed.

        Rounding toward the passive side keeps a sell at or above the
        requested price and a buy at or below it.
        """
        rounding = ROUND_UP if side is Side.SELL else ROUND_DOWN
        price = (limit_price_pct / HUNDRED).quantize(self._tick, rounding=rounding)
        if shares <= ZERO or price <= ZERO:
            msg = f"Invalid {side.value} order: {shares} shares @ {price}"
            raise SubmissionError(msg)
        request = OrderRequest(
            token_id=self.token_id(position),
            side=side.value,
            price=price,
            size=shares,
            tick_size=self._tick_size,
        )
        label = f"{side.value} {shares} {position.value} @ {price}"
        try:
            response = await self._client.place_order(request)
        except OrderRejectedError as exc:
            msg = f"{label} rejected: {exc.reason}"
            raise SubmissionError(msg) from exc
        except (PolymarketAPIError, httpx.HTTPError) as exc:
            msg = f"{label} failed: {exc}"
            raise SubmissionError(msg) from exc
        logger.info(
            "Placed %s %s %s @ %s: order %s (%s)",
            side.value,
            shares,
            position.value,
            price,
            response.order_id,
            response.status,
        )
        return PlacedOrder(order_id=response.order_id, price=price, shares=shares)


def _resolve_tokens(market: Market) -> dict[Outcome, str]:
    """Map YES/NO to token IDs, by outcome label or else by position.

    Binary markets list the YES token first; labels such as ``"Up"`` and
    ``"Down"`` fall back to that order.
    """
    by_label: dict[Outcome, str] = {}
    for token in market.tokens:
        try:
            by_label[Outcome.parse(token.outcome)] = token.token_id
        except ValueError:
            continue
    if len(by_label) == _MIN_TOKENS:
        return by_label
    return {Outcome.YES: market.tokens[0].token_id, Outcome.NO: market.tokens[1].token_id}


def _to_closed_order(response: OrderResponse) -> ClosedOrder | None:
    """Convert a CLOB order into a closed-order record, or ``None`` if still live."""
    status = _CLOSED_STATUSES.get(_normalize_status(response.status))
    if status is None:
        return None
    return ClosedOrder(
        order_id=response.order_id,
        status=status,
        filled_usdt=response.filled_notional,
        total_usdt=response.notional,
    )
