"""Tests for the clearing price calculator."""

from decimal import Decimal

import pytest

from auto_clear.apps.clearing.pricing import calculate_clearing_price, quote_clearing_price
from auto_clear.clients.polymarket.models import OrderBook, OrderLevel

_SIZE = Decimal(100)


def _book(bids: list[str], asks: list[str]) -> OrderBook:
    """Build an order book from best-first price strings."""
    return OrderBook(
        token_id="tok",
        bids=tuple(OrderLevel(price=Decimal(p), size=_SIZE) for p in bids),
        asks=tuple(OrderLevel(price=Decimal(p), size=_SIZE) for p in asks),
        spread=Decimal(0),
        midpoint=Decimal(0),
    )


class TestCalculateClearingPrice:
    """Tests for calculate_clearing_price."""

    def test_narrow_spread_joins_best_ask(self) -> None:
        """Price at the best ask when the spread is within one step."""
        book = _book(["0.91", "0.90"], ["0.93", "0.95"])
        assert calculate_clearing_price(Decimal("0.90"), book) == Decimal("0.930")

    def test_wide_spread_steps_inside_ask(self) -> None:
        """Step inside the ask on a wide spread, floored at cost."""
        book = _book(["0.80"], ["0.95"])
        assert calculate_clearing_price(Decimal("0.85"), book) == Decimal("0.850")

    def test_never_below_cost(self) -> None:
        """Raise the target to cost when the ask is cheaper than cost."""
        book = _book(["0.50"], ["0.55"])
        assert calculate_clearing_price(Decimal("0.70"), book) == Decimal("0.700")

    def test_cost_above_ask_on_tight_book(self) -> None:
        """Quote at cost when cost is above a tight book."""
        book = _book(["0.93"], ["0.94"])
        assert calculate_clearing_price(Decimal("0.92"), book) == Decimal("0.940")

    @pytest.mark.parametrize(
        ("bid", "ask"),
        [("0.94", "0.94"), ("0.95", "0.94")],
    )
    def test_locked_or_crossed_book_has_no_safe_price(self, bid: str, ask: str) -> None:
        """Return None when the target would match the best bid."""
        book = _book([bid], [ask])
        assert calculate_clearing_price(Decimal("0.90"), book) is None

    @pytest.mark.parametrize(
        ("bids", "asks"),
        [([], ["0.60"]), (["0.40"], []), ([], [])],
    )
    def test_empty_side_has_no_safe_price(self, bids: list[str], asks: list[str]) -> None:
        """Return None when either side of the book is empty."""
        assert calculate_clearing_price(Decimal("0.50"), _book(bids, asks)) is None

    def test_rounds_half_up(self) -> None:
        """Round the target half-up to three places."""
        book = _book(["0.40"], ["0.4565"])
        assert calculate_clearing_price(Decimal("0.30"), book) == Decimal("0.457")

    def test_rounds_up_when_half_up_falls_below_cost(self) -> None:
        """Round up rather than quote below cost."""
        book = _book(["0.85"], ["0.90"])
        assert calculate_clearing_price(Decimal("0.9004"), book) == Decimal("0.901")

    def test_rounding_onto_bid_has_no_safe_price(self) -> None:
        """Return None when rounding would land on or below the best bid."""
        book = _book(["0.9301"], ["0.9304"])
        assert calculate_clearing_price(Decimal("0.50"), book) is None

    def test_custom_step_and_places(self) -> None:
        """Honour a custom spread step and precision."""
        book = _book(["0.40"], ["0.60"])
        price = calculate_clearing_price(
            Decimal("0.30"), book, spread_step=Decimal("0.05"), places=2
        )
        assert price == Decimal("0.55")

    def test_deterministic(self) -> None:
        """Return the same price for the same inputs."""
        book = _book(["0.20"], ["0.45"])
        first = calculate_clearing_price(Decimal("0.25"), book)
        second = calculate_clearing_price(Decimal("0.25"), book)
        assert first == second == Decimal("0.350")

    def test_logs_warning_without_safe_price(self, caplog: pytest.LogCaptureFixture) -> None:
        """Log a warning when no safe price exists."""
        with caplog.at_level("WARNING"):
            calculate_clearing_price(Decimal("0.50"), _book([], []))
        assert "book is empty" in caplog.text


class TestQuoteClearingPrice:
    """Tests for quote_clearing_price."""

    def test_carries_top_of_book(self) -> None:
        """Report the best levels, spread and price together."""
        quote = quote_clearing_price(Decimal("0.90"), _book(["0.91"], ["0.93"]))

        assert quote.cost_price == Decimal("0.90")
        assert quote.best_bid == Decimal("0.91")
        assert quote.best_ask == Decimal("0.93")
        assert quote.spread == Decimal("0.02")
        assert quote.price == Decimal("0.930")

    def test_empty_book(self) -> None:
        """Report missing levels and no price on an empty book."""
        quote = quote_clearing_price(Decimal("0.50"), _book([], []))

        assert quote.best_bid is None
        assert quote.best_ask is None
        assert quote.spread is None
        assert quote.price is None
