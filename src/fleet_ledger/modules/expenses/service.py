from __future__ import annotations

import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from fleet_ledger.modules.expenses.models import Expense, ExpenseStatus

_NON_NULLABLE_FIELDS: frozenset[str] = frozenset(
    {"expense_date", "total", "description", "category", "payment_method", "status"}
)

UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "expense_date",
        "total",
        "description",
        "category",
        "payment_method",
        "reference_number",
        "status",
        "vendor_id",
        "vendor_name",
        "account_id",
        "receipt_url",
        "notes",
    }
)


def get_expenses_by_vessel(session: Session, *, vessel_id: int) -> list[Expense]:
    return list(
        session.scalars(
            select(Expense)
            .where(Expense.vessel_id == vessel_id)
            .order_by(Expense.expense_date.desc(), Expense.id.desc())
        )
    )


def get_expenses_with_receipts_by_vessel(session: Session, *, vessel_id: int) -> list[Expense]:
    return list(
        session.scalars(
            select(Expense)
            .where(
                Expense.vessel_id == vessel_id,
                Expense.receipt_url.is_not(None),
                Expense.receipt_url != "",
            )
            .order_by(Expense.expense_date.desc(), Expense.id.desc())
        )
    )


def get_expense(session: Session, *, expense_id: int) -> Expense | None:
    return session.scalar(select(Expense).where(Expense.id == expense_id))


def get_expense_or_404(session: Session, *, expense_id: int) -> Expense:
    expense = get_expense(session, expense_id=expense_id)
    if not expense:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Expense not found")
    return expense


def create_expense(
    session: Session,
    *,
    vessel_id: int,
    created_by_id: uuid.UUID,
    expense_date: datetime,
    total: Decimal,
    description: str,
    category: str | None = None,
    payment_method: str | None = None,
    reference_number: str | None = None,
    status: str | None = None,
    vendor_id: int | None = None,
    vendor_name: str | None = None,
    account_id: int | None = None,
    receipt_url: str | None = None,
    notes: str | None = None,
) -> Expense:
    now = datetime.now(UTC)
    expense = Expense(
        vessel_id=vessel_id,
        created_by_id=created_by_id,
        expense_date=expense_date,
        total=total,
        description=description.strip() or "Expense",
        category=(category or "").strip() or "Other",
        payment_method=(payment_method or "").strip() or "Unknown",
        reference_number=(reference_number or "").strip() or None,
        status=(status or "").strip() or ExpenseStatus.PENDING,
        vendor_id=vendor_id,
        vendor_name=(vendor_name or "").strip() or None,
        account_id=account_id,
        receipt_url=receipt_url or None,
        notes=notes or None,
        created_at=now,
        updated_at=now,
    )
    session.add(expense)
    session.commit()
    session.refresh(expense)
    return expense


def update_expense(session: Session, *, expense: Expense, changes: dict[str, Any]) -> Expense:
    """Partial update; unknown keys are ignored, last writer wins."""
    for key, value in changes.items():
        if key not in UPDATABLE_FIELDS:
            continue
        if value is None and key in _NON_NULLABLE_FIELDS:
            continue
        setattr(expense, key, value)
    expense.updated_at = datetime.now(UTC)
    session.add(expense)
    session.commit()
    session.refresh(expense)
    return expense
