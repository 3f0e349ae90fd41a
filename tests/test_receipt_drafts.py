from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from fleet_ledger.modules.receipts.coercion import coerce_amount, coerce_expense_date
from fleet_ledger.modules.receipts.drafts import (
    FALLBACK_NOTE,
    PROVENANCE_NOTE,
    build_expense_draft,
    normalize_expense_payload,
)
from fleet_ledger.modules.receipts.schemas import ReceiptExtraction, ReceiptItem


def _extraction(**overrides) -> ReceiptExtraction:
    fields = {
        "vendor": "Harbor Fuel",
        "date": "2024-03-10",
        "total": 500.0,
        "items": [ReceiptItem(description="Diesel", amount=500.0)],
        "category": "Fuel",
    }
    fields.update(overrides)
    return ReceiptExtraction(**fields)


def test_draft_from_clean_extraction():
    draft = build_expense_draft(_extraction(receipt_number="R-77", payment_method="Card"))

    assert draft.description == "Harbor Fuel - 1 items"
    assert draft.expense_date == datetime(2024, 3, 10, tzinfo=UTC)
    assert draft.total == "500"
    assert draft.category == "Fuel"
    assert draft.status == "pending"
    assert draft.payment_method == "Card"
    assert draft.reference_number == "R-77"
    assert draft.notes == PROVENANCE_NOTE


def test_draft_defaults_and_flags():
    draft = build_expense_draft(
        _extraction(
            total=12.5,
            category=None,
            suspicious_elements=["Handwritten total", "No tax line"],
        )
    )

    assert draft.total == "12.5"
    assert draft.category == "Other"
    assert draft.payment_method == "Unknown"
    assert draft.reference_number == ""
    assert draft.notes == "AI Flags: Handwritten total, No tax line"


def test_draft_with_unparseable_date_uses_now():
    before = datetime.now(UTC)
    draft = build_expense_draft(_extraction(date="not-a-date"))
    after = datetime.now(UTC)

    assert before <= draft.expense_date <= after


def test_draft_falls_back_when_shaping_fails(monkeypatch):
    from fleet_ledger.modules.receipts import drafts

    def _boom(*args, **kwargs):
        raise ValueError("boom")

    monkeypatch.setattr(drafts, "coerce_expense_date", _boom)

    draft = build_expense_draft(_extraction(vendor="Shell"))

    assert draft.description == "Shell receipt"
    assert draft.total == "0"
    assert draft.category == "Other"
    assert draft.notes == FALLBACK_NOTE
    assert datetime.now(UTC) - draft.expense_date < timedelta(minutes=1)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (500, "500"),
        (500.0, "500"),
        ("1,234.50", "1234.5"),
        ("€ 12,50", "12.5"),
        ("abc", "0"),
        (None, "0"),
        (float("nan"), "0"),
    ],
)
def test_coerce_amount(raw, expected):
    assert coerce_amount(raw) == expected


def test_coerce_expense_date_accepts_epoch_millis_and_iso():
    assert coerce_expense_date(1710028800000) == datetime(2024, 3, 10, tzinfo=UTC)
    assert coerce_expense_date("2024-03-10T12:00:00Z") == datetime(2024, 3, 10, 12, tzinfo=UTC)

    fixed_now = datetime(2025, 1, 1, tzinfo=UTC)
    assert coerce_expense_date("31/31/2024", now=fixed_now) == fixed_now
    assert coerce_expense_date(True, now=fixed_now) == fixed_now


def test_normalize_payload_accepts_camel_case_draft():
    fields = normalize_expense_payload(
        {
            "description": " Fuel top-up ",
            "expenseDate": "garbage",
            "total": "1.234,56",
            "category": "fue",
            "paymentMethod": "Card",
            "referenceNumber": "R-1",
            "receiptUrl": "/uploads/abc.jpg",
            "vendorId": "12",
        }
    )

    assert fields["description"] == "Fuel top-up"
    assert datetime.now(UTC) - fields["expense_date"] < timedelta(minutes=1)
    assert fields["total"] == Decimal("1234.56")
    assert fields["category"] == "Fuel"
    assert fields["payment_method"] == "Card"
    assert fields["reference_number"] == "R-1"
    assert fields["receipt_url"] == "/uploads/abc.jpg"
    assert fields["vendor_id"] == 12
    assert fields["status"] == "pending"
    assert fields["notes"] == PROVENANCE_NOTE


def test_normalize_payload_keeps_unknown_category_text():
    fields = normalize_expense_payload(
        {"total": 20, "category": "Bait", "expense_date": "2024-03-10"}
    )

    assert fields["category"] == "Bait"
    assert fields["total"] == Decimal("20.00")
    assert fields["expense_date"] == datetime(2024, 3, 10, tzinfo=UTC)
    assert fields["description"] == "Receipt analysis"
