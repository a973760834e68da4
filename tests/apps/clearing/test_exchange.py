"""Tests for the Polymarket exchange adapter."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from auto_clear.apps.clearing.exceptions import MarketDataError, SubmissionError
from auto_clear.apps.clearing.exchange import PolymarketExchange
from auto_clear.apps.clearing.models import ClosedOrderStatus
from auto_clear.apps.clearing.protocols import (
    BalanceSource,
    ExchangeClient,
    OrderBookSource,
    OrderQuerySource,
)
from auto_clear.clients.polymarket.exceptions import OrderRejectedError, PolymarketAPIError
from auto_clear.clients.polymarket.models import (
    Balance,
    Market,
    MarketToken,
    OrderBook,
    OrderResponse,
)
from auto_clear.core.models import Outcome, Side

_TOPIC = "0xcond"
_YES_TOKEN = "tok_yes"
_NO_TOKEN = "tok_no"


def _market(labels: tuple[str, str] = ("Yes", "No")) -> Market:
    """Create a binary market with the given outcome labels."""
    return Market(
        condition_id=_TOPIC,
        question="Will it rain?",
        tokens=(
            MarketToken(token_id=_YES_TOKEN, outcome=labels[0], price=Decimal("0.6")),
            MarketToken(token_id=_NO_TOKEN, outcome=labels[1], price=Decimal("0.4")),
        ),
        end_date="2026-12-31",
        active=True,
    )


def _response(  # noqa: PLR0913
    order_id: str = "o1",
    status: str = "LIVE",
    token_id: str = _YES_TOKEN,
    side: str = "BUY",
    price: str = "0.45",
    size: str = "100",
    filled: str = "0",
) -> OrderResponse:
    """Create a typed CLOB order."""
    return OrderResponse(
        order_id=order_id,
        status=status,
        token_id=token_id,
        side=side,
        price=Decimal(price),
        size=Decimal(size),
        filled=Decimal(filled),
    )


@pytest.fixture
def client() -> MagicMock:
    """Create a PolymarketClient mock with async methods."""
    mock = MagicMock()
    mock.get_market = AsyncMock(return_value=_market())
    mock.get_order_book = AsyncMock()
    mock.get_open_orders = AsyncMock(return_value=[])
    mock.get_order = AsyncMock(return_value=None)
    mock.get_balance = AsyncMock(
        return_value=Balance(asset_type="COLLATERAL", balance=Decimal(250), allowance=Decimal(0))
    )
    mock.place_order = AsyncMock(return_value=_response(order_id="new-1", status="live"))
    mock.cancel_order = AsyncMock(return_value={"canceled": ["o1"], "not_canceled": {}})
    return mock


@pytest.fixture
def exchange(client: MagicMock) -> PolymarketExchange:
    """Create an adapter bound to the test market."""
    return PolymarketExchange(client, _market())


class TestConstruction:
    """Tests for building the adapter."""

    def test_implements_engine_protocols(self, exchange: PolymarketExchange) -> None:
        """Satisfy every exchange-facing protocol."""
        assert isinstance(exchange, OrderBookSource)
        assert isinstance(exchange, OrderQuerySource)
        assert isinstance(exchange, BalanceSource)
        assert isinstance(exchange, ExchangeClient)

    def test_resolves_tokens_by_label(self, client: MagicMock) -> None:
        """Map tokens by their YES/NO labels regardless of order."""
        market = Market(
            condition_id=_TOPIC,
            question="Q?",
            tokens=(
                MarketToken(token_id=_NO_TOKEN, outcome="No", price=Decimal(0)),
                MarketToken(token_id=_YES_TOKEN, outcome="Yes", price=Decimal(0)),
            ),
            end_date="",
            active=True,
        )
        exchange = PolymarketExchange(client, market)

        assert exchange.token_id(Outcome.YES) == _YES_TOKEN
        assert exchange.token_id(Outcome.NO) == _NO_TOKEN

    def test_falls_back_to_token_order(self, client: MagicMock) -> None:
        """Treat the first token as YES when labels are not YES/NO."""
        exchange = PolymarketExchange(client, _market(("Up", "Down")))

        assert exchange.token_id(Outcome.YES) == _YES_TOKEN
        assert exchange.token_id(Outcome.NO) == _NO_TOKEN

    def test_rejects_non_binary_market(self, client: MagicMock) -> None:
        """Refuse a market with a single token."""
        market = Market(condition_id=_TOPIC, question="Q?", tokens=(), end_date="", active=True)
        with pytest.raises(ValueError, match="fewer than 2 tokens"):
            PolymarketExchange(client, market)

    @pytest.mark.asyncio
    async def test_for_topic(self, client: MagicMock) -> None:
        """Fetch the market and bind to it."""
        exchange = await PolymarketExchange.for_topic(client, _TOPIC, "0.001")

        assert exchange.topic_id == _TOPIC
        client.get_market.assert_awaited_once_with(_TOPIC)

    @pytest.mark.asyncio
    async def test_for_topic_unknown_market(self, client: MagicMock) -> None:
        """Raise MarketDataError when the market cannot be loaded."""
        client.get_market.side_effect = PolymarketAPIError(msg="Market not found", status_code=404)

        with pytest.raises(MarketDataError, match="Cannot load topic"):
            await PolymarketExchange.for_topic(client, _TOPIC)


class TestMarketData:
    """Tests for books, orders and balance."""

    @pytest.mark.asyncio
    async def test_order_book_uses_position_token(
        self, exchange: PolymarketExchange, client: MagicMock
    ) -> None:
        """Fetch the book of the requested outcome's token."""
        book = OrderBook(
            token_id=_NO_TOKEN, bids=(), asks=(), spread=Decimal(0), midpoint=Decimal(0)
        )
        client.get_order_book.return_value = book

        assert await exchange.get_order_book(Outcome.NO) is book
        client.get_order_book.assert_awaited_once_with(_NO_TOKEN)

    @pytest.mark.asyncio
    async def test_order_book_failure(
        self, exchange: PolymarketExchange, client: MagicMock
    ) -> None:
        """Wrap transport failures in MarketDataError."""
        client.get_order_book.side_effect = httpx.ConnectError("refused")

        with pytest.raises(MarketDataError, match="YES order book"):
            await exchange.get_order_book(Outcome.YES)

    @pytest.mark.asyncio
    async def test_open_orders_mapped_to_outcomes(
        self, exchange: PolymarketExchange, client: MagicMock
    ) -> None:
        """Map tokens to outcomes and skip foreign or malformed orders."""
        client.get_open_orders.return_value = [
            _response("o1", token_id=_YES_TOKEN, filled="10"),
            _response("o2", token_id=_NO_TOKEN, side="SELL"),
            _response("o3", token_id="other"),
            _response("o4", token_id=_YES_TOKEN, side="?"),
        ]

        orders = await exchange.get_open_orders()

        assert [o.order_id for o in orders] == ["o1", "o2"]
        assert orders[0].outcome is Outcome.YES
        assert orders[0].filled == Decimal(10)
        assert orders[1].outcome is Outcome.NO
        assert orders[1].side is Side.SELL
        client.get_open_orders.assert_awaited_once_with(market=_TOPIC)

    @pytest.mark.asyncio
    async def test_open_orders_failure(
        self, exchange: PolymarketExchange, client: MagicMock
    ) -> None:
        """Wrap API failures in MarketDataError."""
        client.get_open_orders.side_effect = PolymarketAPIError(msg="down", status_code=500)

        with pytest.raises(MarketDataError, match="Cannot fetch open orders"):
            await exchange.get_open_orders()

    @pytest.mark.asyncio
    async def test_closed_orders(self, exchange: PolymarketExchange, client: MagicMock) -> None:
        """Report matched and cancelled orders with notional amounts."""
        responses = {
            "filled": _response("filled", status="MATCHED", price="0.5", filled="100"),
            "cancelled": _response(
                "cancelled", status="ORDER_STATUS_CANCELED", price="0.5", filled="20"
            ),
            "live": _response("live", status="LIVE"),
        }
        client.get_order.side_effect = lambda order_id: responses.get(order_id)

        closed = await exchange.get_closed_orders(["filled", "cancelled", "live", "unknown"])

        assert [c.order_id for c in closed] == ["filled", "cancelled"]
        assert closed[0].status is ClosedOrderStatus.FILLED
        assert closed[0].filled_usdt == Decimal(50)
        assert closed[0].total_usdt == Decimal(50)
        assert closed[1].status is ClosedOrderStatus.CANCELLED
        assert closed[1].filled_usdt == Decimal(10)

    @pytest.mark.asyncio
    async def test_closed_orders_failure(
        self, exchange: PolymarketExchange, client: MagicMock
    ) -> None:
        """Wrap lookup failures in MarketDataError."""
        client.get_order.side_effect = PolymarketAPIError(msg="down", status_code=500)

        with pytest.raises(MarketDataError, match="Cannot fetch order o1"):
            await exchange.get_closed_orders(["o1"])

    @pytest.mark.asyncio
    async def test_balance(self, exchange: PolymarketExchange) -> None:
        """Return the USDC balance amount."""
        assert await exchange.get_balance() == Decimal(250)


class TestOrderPlacement:
    """Tests for sell and buy."""

    @pytest.mark.asyncio
    async def test_sell_rounds_up_to_tick(
        self, exchange: PolymarketExchange, client: MagicMock
    ) -> None:
        """Convert the percentage price and round a sell up to the tick."""
        placed = await exchange.sell(Outcome.NO, Decimal("93.1"), Decimal("10.5"))

        assert placed.order_id == "new-1"
        assert placed.price == Decimal("0.94")
        assert placed.shares == Decimal("10.5")
        request = client.place_order.await_args.args[0]
        assert request.token_id == _NO_TOKEN
        assert request.side == "SELL"
        assert request.price == Decimal("0.94")
        assert request.size == Decimal("10.5")
        assert request.tick_size == "0.01"

    @pytest.mark.asyncio
    async def test_buy_rounds_down_to_tick(
        self, exchange: PolymarketExchange, client: MagicMock
    ) -> None:
        """Round a buy price down to the tick."""
        placed = await exchange.buy(Outcome.YES, Decimal("45.9"), Decimal(20))

        request = client.place_order.await_args.args[0]
        assert request.side == "BUY"
        assert request.token_id == _YES_TOKEN
        assert request.price == Decimal("0.45")
        assert placed.price_pct == Decimal(45)

    @pytest.mark.asyncio
    async def test_rejection_raises_submission_error(
        self, exchange: PolymarketExchange, client: MagicMock
    ) -> None:
        """Wrap exchange rejections in SubmissionError."""
        client.place_order.side_effect = OrderRejectedError("not enough balance")

        with pytest.raises(SubmissionError, match="rejected: not enough balance"):
            await exchange.sell(Outcome.YES, Decimal(50), Decimal(10))

    @pytest.mark.asyncio
    async def test_transport_failure_raises_submission_error(
        self, exchange: PolymarketExchange, client: MagicMock
    ) -> None:
        """Wrap transport failures in SubmissionError."""
        client.place_order.side_effect = httpx.ReadTimeout("timed out")

        with pytest.raises(SubmissionError, match="failed: timed out"):
            await exchange.buy(Outcome.NO, Decimal(40), Decimal(10))

    @pytest.mark.asyncio
    async def test_zero_size_is_rejected_locally(
        self, exchange: PolymarketExchange, client: MagicMock
    ) -> None:
        """Refuse to submit an order without shares."""
        with pytest.raises(SubmissionError, match="Invalid SELL order"):
            await exchange.sell(Outcome.YES, Decimal(50), Decimal(0))
        client.place_order.assert_not_awaited()


class TestCancel:
    """Tests for cancel."""

    @pytest.mark.asyncio
    async def test_cancels_order(self, exchange: PolymarketExchange, client: MagicMock) -> None:
        """Forward the cancellation to the CLOB."""
        await exchange.cancel("o1")

        client.cancel_order.assert_awaited_once_with("o1")

    @pytest.mark.asyncio
    async def test_refusal_raises_submission_error(
        self, exchange: PolymarketExchange, client: MagicMock
    ) -> None:
        """Report the CLOB's reason when it refuses the cancellation."""
        client.cancel_order.return_value = {
            "canceled": [],
            "not_canceled": {"o1": "order already matched"},
        }

        with pytest.raises(SubmissionError, match="rejected: order already matched"):
            await exchange.cancel("o1")

    @pytest.mark.asyncio
    async def test_api_failure_raises_submission_error(
        self, exchange: PolymarketExchange, client: MagicMock
    ) -> None:
        """Wrap API failures in SubmissionError."""
        client.cancel_order.side_effect = PolymarketAPIError(msg="boom", status_code=500)

        with pytest.raises(SubmissionError, match="Cancel o1 failed"):
            await exchange.cancel("o1")
