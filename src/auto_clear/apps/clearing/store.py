"""JSON persistence for tracked orders.

Keep one document per topic, mapping each order ID to its camelCase
record.  Every save overwrites the whole file through a temporary file and
an atomic rename, so a crash mid-write leaves the last good document in
place.  Decimals are written as strings so that a save, load, save cycle
reproduces the file byte for byte.
"""

import json
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from auto_clear.apps.clearing.exceptions import PersistenceError
from auto_clear.apps.clearing.models import OrderStatus, TrackedOrder
from auto_clear.core.models import Outcome, Side
from auto_clear.core.timestamps import format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

_DECIMAL_FIELDS = {
    "cost_price": "costPrice",
    "amount": "amount",
    "filled_shares": "filledShares",
    "filled_usdt": "filledUsdt",
    "reverse_price": "reversePrice",
    "reverse_shares": "reverseShares",
}
_TIMESTAMP_FIELDS = {
    "tracked_at": "trackedAt",
    "filled_at": "filledAt",
    "cleared_at": "clearedAt",
}
_REQUIRED_KEYS = ("orderId", "topicId", "position", "side", "costPrice", "amount", "status")


def order_to_record(order: TrackedOrder) -> dict[str, Any]:
    """Serialise a tracked order into its JSON record.

    Args:
        order: Tracked order to serialise.

    Returns:
        Dictionary with camelCase keys and JSON-safe values.

    """
    record: dict[str, Any] = {
        "orderId": order.order_id,
        "topicId": order.topic_id,
        "position": order.position.value,
        "side": order.side.value,
        "status": order.status.value,
        "reverseOrderId": order.reverse_order_id,
        "errorMessage": order.error_message,
    }
    for attr, key in _DECIMAL_FIELDS.items():
        value: Decimal | None = getattr(order, attr)
        record[key] = str(value) if value is not None else None
    for attr, key in _TIMESTAMP_FIELDS.items():
        record[key] = format_timestamp(getattr(order, attr))
    return record


def order_from_record(record: dict[str, Any]) -> TrackedOrder:
    """Rebuild a tracked order from its JSON record.

    Args:
        record: Dictionary previously produced by ``order_to_record``.

    Returns:
        The tracked order.

    Raises:
        PersistenceError: If a required key is missing or a value is malformed.

    """
    missing = [key for key in _REQUIRED_KEYS if record.get(key) in (None, "")]
    if missing:
        msg = f"Tracked order record is missing {', '.join(missing)}"
        raise PersistenceError(msg)
    try:
        decimals = {
            attr: Decimal(str(record[key])) if record.get(key) is not None else None
            for attr, key in _DECIMAL_FIELDS.items()
        }
        timestamps = {
            attr: parse_timestamp(record.get(key)) for attr, key in _TIMESTAMP_FIELDS.items()
        }
        order = TrackedOrder(
            order_id=str(record["orderId"]),
            topic_id=str(record["topicId"]),
            position=Outcome.parse(record["position"]),
            side=Side.parse(record["side"]),
            cost_price=decimals.pop("cost_price"),  # type: ignore[arg-type]
            amount=decimals.pop("amount"),  # type: ignore[arg-type]
            status=OrderStatus(record["status"]),
            reverse_order_id=record.get("reverseOrderId"),
            error_message=record.get("errorMessage"),
        )
    except (InvalidOperation, ValueError, TypeError) as exc:
        msg = f"Malformed tracked order record {record.get('orderId')!r}: {exc}"
        raise PersistenceError(msg) from exc

    for attr, value in decimals.items():
        setattr(order, attr, value)
    for attr, value in timestamps.items():
        if value is not None or attr != "tracked_at":
            setattr(order, attr, value)
    return order


class TrackedOrderStore:
    """Read and write the tracked orders of one topic.

    Args:
        topic_id: Topic whose orders this store holds.
        data_dir: Directory holding one ``topic_<id>.json`` file per topic.

    """

    def __init__(self, topic_id: str, data_dir: Path) -> None:
        """Initialize the store; the data directory is created on first save."""
        safe = topic_id.replace(":", "_").replace("/", "_")
        self.path = Path(data_dir) / f"topic_{safe}.json"
        self.tmp = self.path.with_suffix(".tmp")

    def load(self) -> dict[str, TrackedOrder]:
        """Load every tracked order of the topic.

        Returns:
            Mapping of order ID to tracked order; empty if no file exists.

        Raises:
            PersistenceError: If the file cannot be read or is corrupt.

        """
        if not self.path.exists():
            logger.info("No tracked orders stored at %s", self.path)
            return {}
        try:
            raw: Any = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            msg = f"Cannot read tracked orders from {self.path}: {exc}"
            raise PersistenceError(msg) from exc
        if not isinstance(raw, dict):
            msg = f"Tracked orders file {self.path} must hold a JSON object"
            raise PersistenceError(msg)

        orders: dict[str, TrackedOrder] = {}
        for order_id, record in raw.items():  # pyright: ignore[reportUnknownVariableType]
            if not isinstance(record, dict):
                msg = f"Tracked order {order_id!r} in {self.path} is not an object"
                raise PersistenceError(msg)
            order = order_from_record(record)  # pyright: ignore[reportUnknownArgumentType]
            orders[order.order_id] = order
        logger.info("Loaded %d tracked order(s) from %s", len(orders), self.path)
        return orders

    def save(self, orders: dict[str, TrackedOrder]) -> None:
        """Overwrite the topic file with ``orders``.

        Args:
            orders: Mapping of order ID to tracked order.

        Raises:
            PersistenceError: If the file cannot be written.

        """
        document = {order_id: order_to_record(order) for order_id, order in orders.items()}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.tmp.write_text(json.dumps(document, indent=2), encoding="utf-8")
            self.tmp.replace(self.path)
        except OSError as exc:
            msg = f"Cannot write tracked orders to {self.path}: {exc}"
            raise PersistenceError(msg) from exc


class CancelledOrderLog:
    """Order IDs the trader cancelled by hand, shared through a small file.

    The ``cancel`` command and a running engine are separate processes, so
    the marks live in ``cancelled_<id>.json`` beside the topic file.  A
    mark is consumed the first time its order is seen leaving the book.

    Args:
        topic_id: Topic whose cancellations this log holds.
        data_dir: Directory holding the topic's files.

    """

    def __init__(self, topic_id: str, data_dir: Path) -> None:
        """Initialize the log; the file is created on first mark."""
        safe = topic_id.replace(":", "_").replace("/", "_")
        self.path = Path(data_dir) / f"cancelled_{safe}.json"
        self.tmp = self.path.with_suffix(".tmp")

    def add(self, order_id: str) -> None:
        """Mark ``order_id`` as cancelled by hand.

        Raises:
            PersistenceError: If the file cannot be read or written.

        """
        ids = self._read()
        ids.add(order_id)
        self._write(ids)

    def consume(self, order_id: str) -> bool:
        """Drop the mark for ``order_id``.

        Returns:
            ``True`` if the order had been cancelled by hand.

        Raises:
            PersistenceError: If the file cannot be read or written.

        """
        ids = self._read()
        if order_id not in ids:
            return False
        ids.discard(order_id)
        self._write(ids)
        return True

    def _read(self) -> set[str]:
        if not self.path.exists():
            return set()
        try:
            raw: Any = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            msg = f"Cannot read cancelled orders from {self.path}: {exc}"
            raise PersistenceError(msg) from exc
        if not isinstance(raw, list):
            msg = f"Cancelled orders file {self.path} must hold a JSON array"
            raise PersistenceError(msg)
        return {str(item) for item in raw}  # pyright: ignore[reportUnknownVariableType]

    def _write(self, ids: set[str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.tmp.write_text(json.dumps(sorted(ids), indent=2), encoding="utf-8")
            self.tmp.replace(self.path)
        except OSError as exc:
            msg = f"Cannot write cancelled orders to {self.path}: {exc}"
            raise PersistenceError(msg) from exc
