"""Typed views of the Polymarket CLOB payloads the clearing engine reads.

``py-clob-client`` returns plain dictionaries with string numbers.  These
frozen dataclasses carry the same data as ``Decimal`` values so prices
and sizes never pass through binary floats inside the engine.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

_ZERO = Decimal(0)
_TWO = Decimal(2)


@dataclass(frozen=True)
class OrderLevel:
    """One price level of a book ladder.

    Args:
        price: Probability price between 0 and 1.
        size: Shares resting at this price.

    """

    price: Decimal
    size: Decimal


@dataclass(frozen=True)
class OrderBook:
    """Snapshot of one outcome token's book.

    Build instances with ``from_levels`` so the ladders are sorted from the
    touch outwards; the clearing price calculator reads only the first
    level of each side.

    Args:
        token_id: CLOB token the book belongs to.
        bids: Buy levels, highest price first.
        asks: Sell levels, lowest price first.
        spread: Best ask minus best bid, or zero with an empty side.
        midpoint: Mean of best bid and best ask, or zero with an empty side.

    """

    token_id: str
    bids: tuple[OrderLevel, ...]
    asks: tuple[OrderLevel, ...]
    spread: Decimal
    midpoint: Decimal

    @classmethod
    def from_levels(
        cls, token_id: str, bids: Iterable[OrderLevel], asks: Iterable[OrderLevel]
    ) -> "OrderBook":
        """Sort both ladders from the touch and derive spread and midpoint.

        Args:
            token_id: CLOB token the book belongs to.
            bids: Buy levels in any order.
            asks: Sell levels in any order.

        Returns:
            Book with bids descending and asks ascending by price.

        """
        sorted_bids = tuple(sorted(bids, key=lambda lvl: lvl.price, reverse=True))
        sorted_asks = tuple(sorted(asks, key=lambda lvl: lvl.price))
        spread = _ZERO
        midpoint = _ZERO
        if sorted_bids and sorted_asks:
            spread = sorted_asks[0].price - sorted_bids[0].price
            midpoint = (sorted_asks[0].price + sorted_bids[0].price) / _TWO
        return cls(
            token_id=token_id,
            bids=sorted_bids,
            asks=sorted_asks,
            spread=spread,
            midpoint=midpoint,
        )

    @property
    def best_bid(self) -> OrderLevel | None:
        """Highest bid, or ``None`` when nobody is bidding."""
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> OrderLevel | None:
        """Lowest ask, or ``None`` when nobody is offering."""
        return self.asks[0] if self.asks else None


@dataclass(frozen=True)
class MarketToken:
    """An outcome token of a market.

    Args:
        token_id: CLOB token identifier.
        outcome: Label as listed by the CLOB (``"Yes"``, ``"No"``, ``"Up"``...).
        price: Last price between 0 and 1.

    """

    token_id: str
    outcome: str
    price: Decimal


@dataclass(frozen=True)
class Market:
    """A CLOB market, which the clearing engine calls a topic.

    Args:
        condition_id: Market condition ID; doubles as the topic ID.
        question: Human-readable question, shown in CLI output and alerts.
        tokens: Outcome tokens in CLOB order (YES first for binary markets).
        end_date: ISO-8601 resolution date, empty when unknown.
        active: Whether the market accepts orders.

    """

    condition_id: str
    question: str
    tokens: tuple[MarketToken, ...]
    end_date: str
    active: bool


@dataclass(frozen=True)
class OrderRequest:
    """Parameters of a GTC limit order.

    Args:
        token_id: Outcome token to trade.
        side: ``"BUY"`` or ``"SELL"``.
        price: Limit price between 0 and 1, already on the tick grid.
        size: Shares to trade.
        tick_size: Tick of the market, as the CLOB expects it.

    """

    token_id: str
    side: str
    price: Decimal
    size: Decimal
    tick_size: str = "0.01"


@dataclass(frozen=True)
class OrderResponse:
    """An order as reported by the CLOB, either on placement or on lookup.

    Args:
        order_id: CLOB order ID; empty when the CLOB refused the order.
        status: Raw CLOB status (``"live"``, ``"MATCHED"``, ``"CANCELED"``...).
        token_id: Outcome token of the order.
        side: ``"BUY"`` or ``"SELL"``.
        price: Limit price between 0 and 1.
        size: Original size in shares.
        filled: Shares matched so far.

    """

    order_id: str
    status: str
    token_id: str
    side: str
    price: Decimal
    size: Decimal
    filled: Decimal

    @property
    def notional(self) -> Decimal:
        """USDC value of the full order at its limit price."""
        return self.size * self.price

    @property
    def filled_notional(self) -> Decimal:
        """USDC value matched so far at the limit price."""
        return self.filled * self.price


@dataclass(frozen=True)
class Balance:
    """Balance and exchange allowance of one asset.

    Args:
        asset_type: ``"COLLATERAL"`` (USDC) or ``"CONDITIONAL"`` (outcome token).
        balance: Amount held, in the asset's units.
        allowance: Amount the exchange contract may spend.

    """

    asset_type: str
    balance: Decimal
    allowance: Decimal
