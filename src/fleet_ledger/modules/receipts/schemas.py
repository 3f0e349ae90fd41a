from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import Field

from fleet_ledger.core.schemas import CamelModel
from fleet_ledger.modules.expenses.schemas import ExpenseOut


class ReceiptItem(CamelModel):
    description: str
    amount: float


class ReceiptExtraction(CamelModel):
    vendor: str
    # Free text from the model; only validated when a draft expense is built.
    date: str
    total: float
    items: list[ReceiptItem] = Field(default_factory=list)
    category: str | None = None
    receipt_number: str | None = None
    tax_amount: float | None = None
    currency: str | None = None
    payment_method: str | None = None
    suspicious_elements: list[str] | None = None


class CandidateMatch(CamelModel):
    expense_id: int
    confidence: float = Field(ge=0.0, le=1.0)
    reasons: list[str] = Field(default_factory=list)


class ExpenseDraft(CamelModel):
    description: str
    expense_date: datetime
    total: str
    payment_method: str = "Unknown"
    reference_number: str = ""
    status: str = "pending"
    category: str = "Other"
    notes: str
    vendor_name: str | None = None
    receipt_url: str | None = None


class AnalyzeOut(CamelModel):
    analysis: ReceiptExtraction
    potential_matches: list[CandidateMatch]
    suggested_expense: ExpenseDraft
    receipt_url: str


class LinkToExpenseIn(CamelModel):
    expense_id: int | None = None
    receipt_url: str | None = None
    add_notes: bool = False
    notes: str | None = None


class CreateExpenseIn(CamelModel):
    expense_data: dict[str, Any] | None = None
    vessel_id: int | str | None = None


class ExpenseMutationOut(CamelModel):
    success: bool
    message: str
    expense: ExpenseOut


class ReceiptOut(CamelModel):
    id: int
    expense_id: int
    receipt_url: str
    vendor: str | None
    date: datetime
    total: Decimal
    description: str
    category: str
    status: str
    notes: str | None
