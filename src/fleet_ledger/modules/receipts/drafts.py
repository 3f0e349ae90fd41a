from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from fleet_ledger.core.logging import get_logger, log_exception
from fleet_ledger.modules.expenses.categories import DEFAULT_CATEGORY, normalize_category
from fleet_ledger.modules.expenses.models import ExpenseStatus
from fleet_ledger.modules.receipts.coercion import (
    amount_to_decimal,
    coerce_amount,
    coerce_expense_date,
)
from fleet_ledger.modules.receipts.schemas import ExpenseDraft, ReceiptExtraction

logger = get_logger(__name__)

PROVENANCE_NOTE = "Created from receipt via AI analysis"
FALLBACK_NOTE = "Error occurred during receipt analysis"
DEFAULT_PAYMENT_METHOD = "Unknown"

_MAX_TOTAL = Decimal("9999999999.99")


def _flags_note(flags: list[str] | None) -> str:
    if flags:
        return f"AI Flags: {', '.join(flags)}"
    return PROVENANCE_NOTE


def build_expense_draft(extraction: ReceiptExtraction) -> ExpenseDraft:
    """Shape an extraction into an unsaved expense. Never raises."""
    try:
        return ExpenseDraft(
            description=f"{extraction.vendor} - {len(extraction.items)} items",
            expense_date=coerce_expense_date(extraction.date),
            total=coerce_amount(extraction.total),
            payment_method=extraction.payment_method or DEFAULT_PAYMENT_METHOD,
            reference_number=extraction.receipt_number or "",
            status=ExpenseStatus.PENDING,
            category=extraction.category or DEFAULT_CATEGORY,
            notes=_flags_note(extraction.suspicious_elements),
            vendor_name=extraction.vendor,
        )
    except Exception:  # noqa: BLE001
        log_exception(logger, "receipt.draft.failure")
        return _fallback_draft(extraction)


def _fallback_draft(extraction: Any) -> ExpenseDraft:
    vendor = getattr(extraction, "vendor", None)
    vendor = vendor.strip() if isinstance(vendor, str) else ""
    return ExpenseDraft(
        description=f"{vendor} receipt" if vendor else "Receipt analysis",
        expense_date=datetime.now(UTC),
        total="0",
        payment_method=DEFAULT_PAYMENT_METHOD,
        reference_number="",
        status=ExpenseStatus.PENDING,
        category=DEFAULT_CATEGORY,
        notes=FALLBACK_NOTE,
        vendor_name=vendor or None,
    )


def _pick(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _clean_text(raw: Any, *, max_len: int | None = None) -> str | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float, Decimal)):
        raw = str(raw)
    if not isinstance(raw, str):
        return None
    s = raw.strip()
    if not s:
        return None
    return s[:max_len] if max_len else s


def _optional_int(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def _persistable_total(raw: Any) -> Decimal:
    amount = amount_to_decimal(raw)
    if amount is None or abs(amount) > _MAX_TOTAL:
        return Decimal("0.00")
    return amount.quantize(Decimal("0.01"))


def normalize_expense_payload(data: dict[str, Any]) -> dict[str, Any]:
    """
    Turn a client-submitted (possibly hand-edited) draft into create_expense() kwargs.

    Accepts camelCase or snake_case keys and applies the same date/amount coercion
    and defaults as build_expense_draft().
    """
    raw_category = _clean_text(_pick(data, "category"), max_len=50)
    return {
        "expense_date": coerce_expense_date(_pick(data, "expenseDate", "expense_date", "date")),
        "total": _persistable_total(_pick(data, "total", "amount")),
        "description": _clean_text(_pick(data, "description")) or "Receipt analysis",
        "category": normalize_category(raw_category) or raw_category or DEFAULT_CATEGORY,
        "payment_method": (
            _clean_text(_pick(data, "paymentMethod", "payment_method"), max_len=50)
            or DEFAULT_PAYMENT_METHOD
        ),
        "reference_number": _clean_text(
            _pick(data, "referenceNumber", "reference_number"), max_len=100
        ),
        "status": _clean_text(_pick(data, "status"), max_len=20) or ExpenseStatus.PENDING,
        "vendor_id": _optional_int(_pick(data, "vendorId", "vendor_id")),
        "vendor_name": _clean_text(_pick(data, "vendorName", "vendor_name"), max_len=200),
        "account_id": _optional_int(_pick(data, "accountId", "account_id")),
        "receipt_url": _clean_text(_pick(data, "receiptUrl", "receipt_url"), max_len=500),
        "notes": _clean_text(_pick(data, "notes")) or PROVENANCE_NOTE,
    }
