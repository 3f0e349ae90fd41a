from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from fleet_ledger.modules.expenses.models import Expense
from fleet_ledger.modules.receipts.matching import filter_candidates
from fleet_ledger.modules.receipts.schemas import ReceiptExtraction


def _receipt(*, date: str = "2024-03-10", total: float = 500.0) -> ReceiptExtraction:
    return ReceiptExtraction(vendor="Harbor Fuel", date=date, total=total)


def _expense(expense_id: int, when: datetime, total: str) -> Expense:
    return Expense(
        id=expense_id,
        vessel_id=1,
        expense_date=when,
        total=Decimal(total),
        description="Diesel",
        category="Fuel",
        status="pending",
    )


def test_filter_bounds_are_inclusive():
    expenses = [
        _expense(1, datetime(2024, 3, 17, tzinfo=UTC), "550"),
        _expense(2, datetime(2024, 3, 3, tzinfo=UTC), "450"),
        _expense(3, datetime(2024, 3, 17, 0, 0, 1, tzinfo=UTC), "500"),
        _expense(4, datetime(2024, 3, 10, tzinfo=UTC), "550.01"),
    ]

    kept = filter_candidates(_receipt(), expenses)

    assert [e.id for e in kept] == [1, 2]


def test_filter_treats_naive_store_datetimes_as_utc():
    expenses = [_expense(1, datetime(2024, 3, 16, 23, 0), "505")]

    assert [e.id for e in filter_candidates(_receipt(), expenses)] == [1]


def test_zero_total_receipt_has_no_candidates():
    expenses = [_expense(1, datetime(2024, 3, 10, tzinfo=UTC), "0")]

    assert filter_candidates(_receipt(total=0.0), expenses) == []


def test_unparseable_receipt_date_has_no_candidates():
    expenses = [_expense(1, datetime(2024, 3, 10, tzinfo=UTC), "500")]

    assert filter_candidates(_receipt(date="not-a-date"), expenses) == []
    assert filter_candidates(_receipt(date=""), expenses) == []


def test_filter_accepts_day_first_receipt_dates():
    expenses = [_expense(1, datetime(2024, 3, 12, tzinfo=UTC), "500")]

    assert [e.id for e in filter_candidates(_receipt(date="15.03.2024"), expenses)] == [1]
