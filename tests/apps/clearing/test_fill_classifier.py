"""Tests for the closed-order fill classifier."""

from decimal import Decimal

import pytest

from auto_clear.apps.clearing.fill_classifier import (
    FillClassifier,
    FillVerdict,
    select_candidates,
)
from auto_clear.apps.clearing.models import ClosedOrder, ClosedOrderStatus, OpenOrder
from auto_clear.core.models import Outcome, Side


def _closed(
    filled: str, total: str = "100", status: ClosedOrderStatus = ClosedOrderStatus.FILLED
) -> ClosedOrder:
    """Create a closed order from string amounts."""
    return ClosedOrder(
        order_id="o1", status=status, filled_usdt=Decimal(filled), total_usdt=Decimal(total)
    )


class TestSelectCandidates:
    """Tests for select_candidates."""

    def test_excludes_resting_orders(self) -> None:
        """Only return pending IDs that have left the book."""
        resting = OpenOrder(
            order_id="b",
            side=Side.BUY,
            outcome=Outcome.NO,
            price=Decimal("0.3"),
            amount=Decimal(10),
        )
        assert select_candidates({"c", "a", "b"}, [resting]) == ["a", "c"]

    def test_no_pending_orders(self) -> None:
        """Return an empty list when nothing is pending."""
        assert select_candidates([], []) == []


class TestFillClassifier:
    """Tests for FillClassifier.classify."""

    @pytest.fixture
    def classifier(self) -> FillClassifier:
        """Create a classifier with the default tolerance."""
        return FillClassifier()

    @pytest.mark.parametrize(
        ("filled", "expected"),
        [
            ("100", FillVerdict.FILLED),
            ("99.95", FillVerdict.FILLED),
            ("99.9", FillVerdict.FILLED),
            ("99.89", FillVerdict.CANCELLED),
            ("0", FillVerdict.CANCELLED),
        ],
    )
    def test_tolerance_band(
        self, classifier: FillClassifier, filled: str, expected: FillVerdict
    ) -> None:
        """Classify by the 0.999 notional band."""
        assert classifier.classify(_closed(filled)) is expected

    @pytest.mark.parametrize("status", [ClosedOrderStatus.CANCELLED, ClosedOrderStatus.FAILED])
    def test_non_filled_status_is_cancelled(
        self, classifier: FillClassifier, status: ClosedOrderStatus
    ) -> None:
        """Never treat a cancelled or failed order as filled."""
        assert classifier.classify(_closed("100", status=status)) is FillVerdict.CANCELLED

    def test_zero_total_is_cancelled(self, classifier: FillClassifier) -> None:
        """Treat a zero notional order as cancelled."""
        assert classifier.classify(_closed("0", total="0")) is FillVerdict.CANCELLED

    def test_custom_tolerance(self) -> None:
        """Honour a looser tolerance."""
        classifier = FillClassifier(Decimal("0.9"))
        assert classifier.classify(_closed("91")) is FillVerdict.FILLED


class TestFilledShares:
    """Tests for FillClassifier.filled_shares."""

    def test_converts_notional_at_cost(self) -> None:
        """Divide the matched notional by the cost probability."""
        shares = FillClassifier.filled_shares(_closed("45"), Decimal(45))
        assert shares == Decimal(100)

    def test_non_positive_cost_is_zero(self) -> None:
        """Return zero rather than dividing by zero."""
        assert FillClassifier.filled_shares(_closed("45"), Decimal(0)) == Decimal(0)
