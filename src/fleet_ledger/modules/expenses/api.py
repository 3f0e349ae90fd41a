from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fleet_ledger.api.deps import get_current_user
from fleet_ledger.core.db import db_session
from fleet_ledger.modules.expenses.schemas import ExpenseCreateIn, ExpenseOut, ExpenseUpdateIn
from fleet_ledger.modules.expenses.service import (
    create_expense,
    get_expense_or_404,
    get_expenses_by_vessel,
    update_expense,
)
from fleet_ledger.modules.identity.models import User
from fleet_ledger.modules.vessels.service import get_vessel

router = APIRouter(tags=["expenses"])


@router.get("/vessels/{vessel_id}/expenses", response_model=list[ExpenseOut])
def list_expenses_endpoint(
    vessel_id: int,
    session: Session = Depends(db_session),
    _: User = Depends(get_current_user),
) -> list[ExpenseOut]:
    vessel = get_vessel(session, vessel_id=vessel_id)
    expenses = get_expenses_by_vessel(session, vessel_id=vessel.id)
    return [ExpenseOut.model_validate(e, from_attributes=True) for e in expenses]


@router.post("/vessels/{vessel_id}/expenses", response_model=ExpenseOut)
def create_expense_endpoint(
    vessel_id: int,
    payload: ExpenseCreateIn,
    session: Session = Depends(db_session),
    user: User = Depends(get_current_user),
) -> ExpenseOut:
    vessel = get_vessel(session, vessel_id=vessel_id)
    expense = create_expense(
        session, vessel_id=vessel.id, created_by_id=user.id, **payload.model_dump()
    )
    return ExpenseOut.model_validate(expense, from_attributes=True)


@router.get("/expenses/{expense_id}", response_model=ExpenseOut)
def get_expense_endpoint(
    expense_id: int,
    session: Session = Depends(db_session),
    _: User = Depends(get_current_user),
) -> ExpenseOut:
    return ExpenseOut.model_validate(
        get_expense_or_404(session, expense_id=expense_id), from_attributes=True
    )


@router.patch("/expenses/{expense_id}", response_model=ExpenseOut)
def update_expense_endpoint(
    expense_id: int,
    payload: ExpenseUpdateIn,
    session: Session = Depends(db_session),
    _: User = Depends(get_current_user),
) -> ExpenseOut:
    expense = get_expense_or_404(session, expense_id=expense_id)
    expense = update_expense(
        session, expense=expense, changes=payload.model_dump(exclude_unset=True)
    )
    return ExpenseOut.model_validate(expense, from_attributes=True)
