"""Typed async facade for the Polymarket CLOB.

Wrap the synchronous CLOB adapter in an async interface.  Synchronous
CLOB calls are run with ``asyncio.to_thread()`` to avoid blocking the
event loop, and serialised with a lock because ``ClobClient`` shares a
single HTTP session between calls.
"""

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from auto_clear.clients.polymarket import _clob_adapter
from auto_clear.clients.polymarket.exceptions import (
    AuthenticationRequiredError,
    OrderRejectedError,
    PolymarketAPIError,
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

logger = logging.getLogger(__name__)

_ZERO = Decimal(0)
_USDC_DECIMALS = Decimal("1e6")


class PolymarketClient:
    """Typed async client for Polymarket prediction markets.

    Provide market metadata, live order books, order placement and the
    authenticated user's order and balance queries.  All public methods
    are async and return typed dataclasses.

    Args:
        host: Base URL for the Polymarket CLOB API.
        private_key: Polygon wallet private key; omit for read-only use.
        api_key: Pre-existing CLOB API key.
        api_secret: Pre-existing CLOB API secret.
        api_passphrase: Pre-existing CLOB API passphrase.
        funder_address: Proxy wallet address holding the trading funds.

    """

    CLOB_HOST = "https://clob.polymarket.com"

    def __init__(
        self,
        host: str = CLOB_HOST,
        private_key: str | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
        api_passphrase: str | None = None,
        funder_address: str | None = None,
    ) -> None:
        """Initialize the Polymarket client.

        When ``private_key`` is provided, create an authenticated client
        capable of placing trades.  If API credentials are also provided,
        skip the key derivation step and connect at Level 2 immediately.
        Without a private key the client operates in read-only mode.

        Args:
            host: Base URL for the Polymarket CLOB API.
            private_key: Polygon wallet private key (hex ``0x…`` string).
            api_key: Pre-existing CLOB API key.
            api_secret: Pre-existing CLOB API secret.
            api_passphrase: Pre-existing CLOB API passphrase.
            funder_address: Proxy wallet address holding the trading funds.
                Required for Polymarket UI-funded (proxy wallet) accounts.

        """
        self._authenticated = private_key is not None
        if private_key is not None:
            creds = (
                (api_key, api_secret, api_passphrase)
                if api_key and api_secret and api_passphrase
                else None
            )
            self._clob_client: Any = _clob_adapter.create_authenticated_clob_client(
                host, private_key, creds=creds, funder=funder_address
            )
        else:
            self._clob_client = _clob_adapter.create_clob_client(host)
        self._clob_lock = asyncio.Lock()

    async def get_market(self, condition_id: str) -> Market:
        """Fetch a single market and its outcome tokens.

        Args:
            condition_id: Unique identifier for the market condition.

        Returns:
            Market with its YES/NO tokens.

        Raises:
            PolymarketAPIError: When the market is not found or API fails.

        """
        async with self._clob_lock:
            raw = await asyncio.to_thread(
                _clob_adapter.fetch_market, self._clob_client, condition_id
            )
        if raw is None:
            raise PolymarketAPIError(
                msg=f"Market not found: {condition_id}",
                status_code=404,
            )
        return self._parse_clob_market(raw)

    async def get_order_book(self, token_id: str) -> OrderBook:
        """Fetch a typed order book for a token.

        Args:
            token_id: CLOB token identifier.

        Returns:
            Typed order book with bids, asks, spread, and midpoint.  A token
            without a book yields an empty ``OrderBook``.

        Raises:
            PolymarketAPIError: When the CLOB API call fails.

        """
        async with self._clob_lock:
            raw = await asyncio.to_thread(
                _clob_adapter.fetch_order_book,
                self._clob_client,
                token_id,
            )
        if raw is None:
            return OrderBook.from_levels(token_id, bids=(), asks=())
        return self._parse_order_book(token_id, raw)

    def _require_auth(self) -> None:
        """Raise an error if the client is not authenticated.

        Raises:
            AuthenticationRequiredError: When no private key was provided at init.

        """
        if not self._authenticated:
            raise AuthenticationRequiredError

    async def place_order(self, request: OrderRequest) -> OrderResponse:
        """Place a GTC limit order on Polymarket.

        Args:
            request: Typed order request with token, side, price, and size.

        Returns:
            Typed order response with ID, status, and fill information.

        Raises:
            OrderRejectedError: When the CLOB refuses the order.
            PolymarketAPIError: When not authenticated or the request fails.

        """
        self._require_auth()
        async with self._clob_lock:
            raw = await asyncio.to_thread(
                _clob_adapter.place_limit_order,
                self._clob_client,
                request.token_id,
                request.side,
                float(request.price),
                float(request.size),
                request.tick_size,
            )
        response = _parse_order_response(raw, request)
        if not response.order_id:
            error = raw.get("errorMsg") or raw.get("error") or "no order ID returned"
            raise OrderRejectedError(str(error))
        return response

    async def get_balance(self, asset_type: str = "COLLATERAL") -> Balance:
        """Fetch the balance and allowance for an asset.

        Args:
            asset_type: ``"COLLATERAL"`` for USDC or ``"CONDITIONAL"`` for tokens.

        Returns:
            Typed balance with balance and allowance amounts.

        Raises:
            PolymarketAPIError: When not authenticated or the query fails.

        """
        self._require_auth()
        async with self._clob_lock:
            raw = await asyncio.to_thread(_clob_adapter.get_balance, self._clob_client, asset_type)
        raw_balance = _safe_decimal(raw.get("balance"))
        raw_allowance = _safe_decimal(raw.get("allowance"))
        return Balance(
            asset_type=asset_type,
            balance=raw_balance / _USDC_DECIMALS,
            allowance=raw_allowance / _USDC_DECIMALS,
        )

    async def cancel_order(self, order_id: str) -> dict[str, Any]:
        """Cancel an open order.

        Args:
            order_id: Identifier of the order to cancel.

        Returns:
            Raw API response confirming the cancellation.

        Raises:
            PolymarketAPIError: When not authenticated or cancellation fails.

        """
        self._require_auth()
        async with self._clob_lock:
            return await asyncio.to_thread(_clob_adapter.cancel_order, self._clob_client, order_id)

    async def get_open_orders(self, market: str | None = None) -> list[OrderResponse]:
        """Fetch open orders for the authenticated user.

        Args:
            market: Optional condition ID restricting the result to one market.

        Returns:
            List of typed order responses.

        Raises:
            PolymarketAPIError: When not authenticated or the query fails.

        """
        self._require_auth()
        async with self._clob_lock:
            raw_list = await asyncio.to_thread(
                _clob_adapter.get_open_orders, self._clob_client, market
            )
        return [_parse_raw_order(raw) for raw in raw_list]

    async def get_order(self, order_id: str) -> OrderResponse | None:
        """Fetch one of the user's orders, whatever its state.

        Args:
            order_id: Identifier of the order.

        Returns:
            Typed order, or ``None`` when the CLOB does not know it.

        Raises:
            PolymarketAPIError: When not authenticated or the query fails.

        """
        self._require_auth()
        async with self._clob_lock:
            raw = await asyncio.to_thread(_clob_adapter.get_order, self._clob_client, order_id)
        return _parse_raw_order(raw) if raw is not None else None

    async def close(self) -> None:
        """Release client resources.

        ``ClobClient`` keeps no connection open between calls, so there is
        nothing to tear down; the method exists for symmetry with other
        async clients used as context managers.
        """
        logger.debug("Polymarket client closed")

    async def __aenter__(self) -> "PolymarketClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()

    @staticmethod
    def _parse_clob_market(raw: dict[str, Any]) -> Market:
        """Convert a raw CLOB API market dict into a typed Market.

        The CLOB API uses snake_case keys and embeds tokens as a list of
        dicts with ``token_id``, ``outcome``, and ``price`` fields.

        Args:
            raw: Market dictionary from the CLOB ``/markets/`` endpoint.

        Returns:
            Typed Market dataclass.

        """
        tokens = [
            MarketToken(
                token_id=str(t.get("token_id", "")),
                outcome=str(t.get("outcome", "")),
                price=_safe_decimal(t.get("price", "0")),
            )
            for t in raw.get("tokens", [])
        ]
        return Market(
            condition_id=raw.get("condition_id", ""),
            question=raw.get("question", ""),
            tokens=tuple(tokens),
            end_date=raw.get("end_date_iso", ""),
            active=bool(raw.get("active", False)),
        )

    @staticmethod
    def _parse_order_book(token_id: str, raw: dict[str, Any]) -> OrderBook:
        """Convert a raw CLOB order book dict into a typed OrderBook.

        Sort bids best (highest) first and asks best (lowest) first, since
        the CLOB returns both ladders ordered away from the touch.

        Args:
            token_id: CLOB token identifier.
            raw: Raw order book dictionary with ``bids`` and ``asks``.

        Returns:
            Typed OrderBook dataclass.

        """
        return OrderBook.from_levels(
            token_id,
            bids=(_parse_level(level) for level in raw.get("bids", [])),
            asks=(_parse_level(level) for level in raw.get("asks", [])),
        )


def _parse_level(raw: dict[str, Any]) -> OrderLevel:
    """Convert one raw ladder entry into an OrderLevel."""
    return OrderLevel(
        price=_safe_decimal(raw.get("price", "0")),
        size=_safe_decimal(raw.get("size", "0")),
    )


def _safe_decimal(value: Any) -> Decimal:
    """Convert a value to Decimal, returning zero for None/empty strings.

    Raise ``PolymarketAPIError`` for values that are present but
    cannot be parsed into a valid Decimal, rather than silently
    substituting zero for corrupt data.

    Args:
        value: Value to convert (string, float, int, or None).

    Returns:
        Decimal representation, or ``Decimal("0")`` for None/empty.

    Raises:
        PolymarketAPIError: If the value is non-empty but malformed.

    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return _ZERO
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        msg = f"Cannot convert {value!r} to Decimal"
        raise PolymarketAPIError(msg=msg, status_code=0) from exc


def _parse_order_response(raw: dict[str, Any], request: OrderRequest) -> OrderResponse:
    """Convert a raw CLOB API order response into a typed OrderResponse.

    The API may return different key formats depending on the endpoint.
    Fall back to the request values for fields not present in the response.

    Args:
        raw: Raw dictionary from the CLOB ``post_order`` call.
        request: Original order request used for fallback values.

    Returns:
        Typed OrderResponse dataclass.

    """
    return OrderResponse(
        order_id=str(raw.get("orderID", raw.get("id", ""))),
        status=str(raw.get("status", "unknown")),
        token_id=request.token_id,
        side=request.side,
        price=request.price,
        size=request.size,
        filled=_safe_decimal(raw.get("filled", "0")),
    )


def _parse_raw_order(raw: dict[str, Any]) -> OrderResponse:
    """Convert a raw order dictionary into a typed OrderResponse.

    Args:
        raw: Order dictionary from the CLOB ``get_orders``/``get_order``
            endpoints.

    Returns:
        Typed OrderResponse dataclass.

    """
    return OrderResponse(
        order_id=str(raw.get("id", raw.get("orderID", ""))),
        status=str(raw.get("status", "unknown")),
        token_id=str(raw.get("asset_id", raw.get("token_id", ""))),
        side=str(raw.get("side", "")),
        price=_safe_decimal(raw.get("price", "0")),
        size=_safe_decimal(raw.get("original_size", raw.get("size", "0"))),
        filled=_safe_decimal(raw.get("size_matched", raw.get("filled", "0"))),
    )
