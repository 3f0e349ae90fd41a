from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from fleet_ledger.core.schemas import CamelModel


class ExpenseCreateIn(CamelModel):
    expense_date: datetime
    total: Decimal
    description: str
    category: str | None = None
    payment_method: str | None = None
    reference_number: str | None = None
    status: str | None = None
    vendor_id: int | None = None
    vendor_name: str | None = None
    account_id: int | None = None
    receipt_url: str | None = None
    notes: str | None = None


class ExpenseUpdateIn(CamelModel):
    expense_date: datetime | None = None
    total: Decimal | None = None
    description: str | None = None
    category: str | None = None
    payment_method: str | None = None
    reference_number: str | None = None
    status: str | None = None
    vendor_id: int | None = None
    vendor_name: str | None = None
    account_id: int | None = None
    receipt_url: str | None = None
    notes: str | None = None


class ExpenseOut(CamelModel):
    id: int
    vessel_id: int
    account_id: int | None
    vendor_id: int | None
    vendor_name: str | None
    expense_date: datetime
    total: Decimal
    description: str
    category: str
    payment_method: str
    reference_number: str | None
    status: str
    receipt_url: str | None
    notes: str | None
    created_by_id: uuid.UUID
    created_at: datetime
    updated_at: datetime
