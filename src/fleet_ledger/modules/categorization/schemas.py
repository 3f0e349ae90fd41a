from __future__ import annotations

from decimal import Decimal

from pydantic import Field

from fleet_ledger.core.schemas import CamelModel


class CategorizeIn(CamelModel):
    description: str = Field(min_length=1)
    amount: Decimal


class CategorySuggestionOut(CamelModel):
    category: str
    category_name: str
    confidence: float
    explanation: str


class CategorizeTaskOut(CamelModel):
    task_id: str | None
