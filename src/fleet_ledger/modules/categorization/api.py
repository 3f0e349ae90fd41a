from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fleet_ledger.api.deps import get_current_user
from fleet_ledger.core.config import settings
from fleet_ledger.core.db import db_session
from fleet_ledger.modules.categorization.schemas import (
    CategorizeIn,
    CategorizeTaskOut,
    CategorySuggestionOut,
)
from fleet_ledger.modules.categorization.service import categorize_expense
from fleet_ledger.modules.identity.models import User
from fleet_ledger.modules.vessels.service import get_vessel
from fleet_ledger.worker.tasks import categorize_vessel_expenses_task

router = APIRouter(tags=["categorization"])


@router.post("/expenses/categorize", response_model=CategorySuggestionOut)
def categorize_endpoint(
    payload: CategorizeIn,
    _: User = Depends(get_current_user),
) -> CategorySuggestionOut:
    suggestion = categorize_expense(payload.description, payload.amount)
    return CategorySuggestionOut(
        category=suggestion.category,
        category_name=suggestion.category_name,
        confidence=suggestion.confidence,
        explanation=suggestion.explanation,
    )


@router.post("/vessels/{vessel_id}/expenses/categorize", response_model=CategorizeTaskOut)
def categorize_vessel_endpoint(
    vessel_id: int,
    session: Session = Depends(db_session),
    _: User = Depends(get_current_user),
) -> CategorizeTaskOut:
    vessel = get_vessel(session, vessel_id=vessel_id)
    async_result = categorize_vessel_expenses_task.delay(
        vessel.id, settings.categorization_min_confidence
    )
    return CategorizeTaskOut(task_id=getattr(async_result, "id", None))
