"""Tests for JSON persistence of tracked orders."""

import json
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

import pytest

from auto_clear.apps.clearing.exceptions import PersistenceError
from auto_clear.apps.clearing.models import OrderStatus, TrackedOrder
from auto_clear.apps.clearing.store import (
    CancelledOrderLog,
    TrackedOrderStore,
    order_from_record,
    order_to_record,
)
from auto_clear.core.models import Outcome, Side

_TOPIC = "0xabc"
_TRACKED_AT = datetime(2024, 5, 1, 9, 30, tzinfo=UTC)


def _cleared_order() -> TrackedOrder:
    """Create an order with every optional field set."""
    return TrackedOrder(
        order_id="o1",
        topic_id=_TOPIC,
        position=Outcome.NO,
        side=Side.BUY,
        cost_price=Decimal("45.50"),
        amount=Decimal("100"),
        tracked_at=_TRACKED_AT,
        status=OrderStatus.CLEARED,
        filled_at=datetime(2024, 5, 1, 9, 31, tzinfo=UTC),
        filled_shares=Decimal("99.9000"),
        filled_usdt=Decimal("45.4545"),
        reverse_order_id="r1",
        reverse_price=Decimal("0.470"),
        reverse_shares=Decimal("99.9000"),
        cleared_at=datetime(2024, 5, 1, 9, 31, 5, tzinfo=UTC),
    )


class TestRecords:
    """Tests for order_to_record and order_from_record."""

    def test_record_uses_camel_case_and_strings(self) -> None:
        """Write camelCase keys with Decimal values as strings."""
        record = order_to_record(_cleared_order())

        assert record["orderId"] == "o1"
        assert record["topicId"] == _TOPIC
        assert record["position"] == "NO"
        assert record["side"] == "BUY"
        assert record["costPrice"] == "45.50"
        assert record["status"] == "cleared"
        assert record["reversePrice"] == "0.470"
        assert record["trackedAt"] == "2024-05-01T09:30:00+00:00"
        assert record["errorMessage"] is None

    def test_round_trip_preserves_every_field(self) -> None:
        """Rebuild an identical order from its record."""
        order = _cleared_order()
        assert order_from_record(order_to_record(order)) == order

    def test_missing_required_key_raises(self) -> None:
        """Reject a record without an order ID."""
        record = order_to_record(_cleared_order())
        del record["orderId"]

        with pytest.raises(PersistenceError, match="missing orderId"):
            order_from_record(record)

    @pytest.mark.parametrize(
        ("key", "value"),
        [("costPrice", "abc"), ("status", "done"), ("position", "MAYBE"), ("filledAt", "x")],
    )
    def test_malformed_value_raises(self, key: str, value: str) -> None:
        """Reject a record with an unparseable value."""
        record = order_to_record(_cleared_order())
        record[key] = value

        with pytest.raises(PersistenceError, match="Malformed tracked order record"):
            order_from_record(record)


class TestTrackedOrderStore:
    """Tests for TrackedOrderStore."""

    @pytest.fixture
    def store(self, tmp_path: Path) -> TrackedOrderStore:
        """Create a store under a temporary directory."""
        return TrackedOrderStore(_TOPIC, tmp_path / "data")

    def test_path_per_topic(self, store: TrackedOrderStore, tmp_path: Path) -> None:
        """Name the file after the topic."""
        assert store.path == tmp_path / "data" / "topic_0xabc.json"

    def test_missing_file_loads_empty(self, store: TrackedOrderStore) -> None:
        """Return no orders when nothing was saved yet."""
        assert store.load() == {}

    def test_save_creates_directory_and_file(self, store: TrackedOrderStore) -> None:
        """Create the data directory on first save and leave no temp file."""
        store.save({"o1": _cleared_order()})

        assert store.path.exists()
        assert not store.tmp.exists()
        document = json.loads(store.path.read_text(encoding="utf-8"))
        assert list(document) == ["o1"]

    def test_save_load_save_is_fixed_point(self, store: TrackedOrderStore) -> None:
        """Reproduce the file byte for byte after a reload."""
        pending = TrackedOrder(
            order_id="o2",
            topic_id=_TOPIC,
            position=Outcome.YES,
            side=Side.SELL,
            cost_price=Decimal(60),
            amount=Decimal("12.5"),
            tracked_at=_TRACKED_AT,
        )
        store.save({"o1": _cleared_order(), "o2": pending})
        first = store.path.read_text(encoding="utf-8")

        loaded = store.load()
        store.save(loaded)

        assert store.path.read_text(encoding="utf-8") == first
        assert loaded["o1"] == _cleared_order()
        assert loaded["o2"] == pending

    def test_corrupt_json_raises(self, store: TrackedOrderStore) -> None:
        """Raise PersistenceError for a truncated document."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json", encoding="utf-8")

        with pytest.raises(PersistenceError, match="Cannot read tracked orders"):
            store.load()

    def test_non_object_document_raises(self, store: TrackedOrderStore) -> None:
        """Raise PersistenceError when the document is not a JSON object."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text("[]", encoding="utf-8")

        with pytest.raises(PersistenceError, match="must hold a JSON object"):
            store.load()

    def test_non_object_record_raises(self, store: TrackedOrderStore) -> None:
        """Raise PersistenceError when a record is not a JSON object."""
        store.path.parent.mkdir(parents=True)
        store.path.write_text('{"o1": 5}', encoding="utf-8")

        with pytest.raises(PersistenceError, match="is not an object"):
            store.load()

    def test_unwritable_directory_raises(self, tmp_path: Path) -> None:
        """Raise PersistenceError when the data directory cannot be created."""
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = TrackedOrderStore(_TOPIC, blocker / "data")

        with pytest.raises(PersistenceError, match="Cannot write tracked orders"):
            store.save({"o1": _cleared_order()})


class TestCancelledOrderLog:
    """Tests for the manual-cancellation marks."""

    def test_mark_is_consumed_once(self, tmp_path: Path) -> None:
        """Report a mark once and then forget it."""
        marks = CancelledOrderLog(_TOPIC, tmp_path)
        marks.add("o1")

        assert marks.consume("o1") is True
        assert marks.consume("o1") is False

    def test_marks_are_shared_through_the_file(self, tmp_path: Path) -> None:
        """See marks written by another instance of the same topic."""
        CancelledOrderLog(_TOPIC, tmp_path).add("o1")
        CancelledOrderLog(_TOPIC, tmp_path).add("o2")

        reader = CancelledOrderLog(_TOPIC, tmp_path)

        assert json.loads(reader.path.read_text(encoding="utf-8")) == ["o1", "o2"]
        assert reader.consume("o2") is True
        assert CancelledOrderLog("0xother", tmp_path).consume("o1") is False

    def test_missing_file_has_no_marks(self, tmp_path: Path) -> None:
        """Treat a missing file as no marks without creating it."""
        marks = CancelledOrderLog(_TOPIC, tmp_path)

        assert marks.consume("o1") is False
        assert not marks.path.exists()

    def test_corrupt_file_raises(self, tmp_path: Path) -> None:
        """Refuse a file that does not hold a JSON array."""
        marks = CancelledOrderLog(_TOPIC, tmp_path)
        marks.path.write_text('{"o1": true}', encoding="utf-8")

        with pytest.raises(PersistenceError, match="must hold a JSON array"):
            marks.consume("o1")
