from __future__ import annotations

import json
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import or_, select

from fleet_ledger.core.db import SessionLocal
from fleet_ledger.core.inference import chat_completion, parse_json_object
from fleet_ledger.core.logging import get_logger, log_event, log_exception
from fleet_ledger.modules.expenses.categories import (
    CATEGORY_CODES,
    DEFAULT_CATEGORY,
    category_for_code,
)
from fleet_ledger.modules.expenses.models import Expense
from fleet_ledger.modules.expenses.service import update_expense

logger = get_logger(__name__)

FALLBACK_CODE = "OTH"
FALLBACK_EXPLANATION = "Error during categorization"

_CODE_LIST = ", ".join(f"{code} ({name})" for code, name in CATEGORY_CODES.items())

_SYSTEM_PROMPT = (
    "You are an expert in marine vessel expense categorization. "
    "Categorize the expense into one of the following category codes: "
    f"{_CODE_LIST}. "
    "Provide your confidence level (0-1) and a brief explanation. "
    'Respond with JSON only: { "category": string, "confidence": number, '
    '"explanation": string }'
)

_BATCH_SYSTEM_PROMPT = (
    "You are an expert in marine vessel expense categorization. "
    "Categorize each expense into one of the following category codes: "
    f"{_CODE_LIST}. "
    "For each expense provide the category code, a confidence level (0-1) and a brief "
    "explanation. "
    'Respond with JSON only: { "results": [{ "id": number, "category": string, '
    '"confidence": number, "explanation": string }] }'
)


@dataclass(frozen=True)
class CategorySuggestion:
    category: str
    confidence: float
    explanation: str

    @property
    def category_name(self) -> str:
        return category_for_code(self.category)


def _fallback() -> CategorySuggestion:
    return CategorySuggestion(
        category=FALLBACK_CODE, confidence=0.0, explanation=FALLBACK_EXPLANATION
    )


def _suggestion_from(obj: Any) -> CategorySuggestion:
    if not isinstance(obj, dict):
        return _fallback()
    code = obj.get("category")
    code = code.strip().upper() if isinstance(code, str) else ""
    if code not in CATEGORY_CODES:
        code = FALLBACK_CODE
    raw_conf = obj.get("confidence")
    try:
        conf = 0.0 if isinstance(raw_conf, bool) else float(raw_conf)
    except (TypeError, ValueError):
        conf = 0.0
    if not math.isfinite(conf):
        conf = 0.0
    explanation = obj.get("explanation")
    return CategorySuggestion(
        category=code,
        confidence=max(0.0, min(conf, 1.0)),
        explanation=explanation.strip() if isinstance(explanation, str) else "",
    )


def categorize_expense(description: str, amount: Decimal | float) -> CategorySuggestion:
    """Ask the model for a category code. Never raises; failures map to OTH with confidence 0."""
    messages = [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {
            "role": "user",
            "content": f"Expense description: {description}\nAmount: {amount}",
        },
    ]
    try:
        content = chat_completion(messages)
    except Exception:  # noqa: BLE001
        log_exception(logger, "categorization.call.failure")
        return _fallback()
    return _suggestion_from(parse_json_object(content))


def batch_categorize_expenses(
    expenses: list[dict[str, Any]],
) -> dict[Any, CategorySuggestion]:
    """
    Categorize many expenses in one call.

    Input items are `{"id", "description", "amount"}`; the result maps every input id
    to a suggestion. Ids missing from the model output fall back to OTH/0.
    """
    if not expenses:
        return {}
    ids = [e.get("id") for e in expenses]
    messages = [
        {"role": "system", "content": _BATCH_SYSTEM_PROMPT},
        {"role": "user", "content": json.dumps(expenses, default=str)},
    ]
    try:
        content = chat_completion(messages)
    except Exception:  # noqa: BLE001
        log_exception(logger, "categorization.batch.failure", expense_count=len(expenses))
        return {i: _fallback() for i in ids}

    obj = parse_json_object(content)
    results = obj.get("results") if isinstance(obj, dict) else None
    # Models often echo numeric ids as strings
    by_id: dict[str, CategorySuggestion] = {}
    if isinstance(results, list):
        wanted = {str(i) for i in ids}
        for item in results:
            if isinstance(item, dict) and str(item.get("id")) in wanted:
                by_id[str(item["id"])] = _suggestion_from(item)
    return {i: by_id.get(str(i), _fallback()) for i in ids}


def categorize_vessel_expenses(*, vessel_id: int, min_confidence: float) -> int:
    """Recategorize a vessel's uncategorized expenses; returns how many were updated."""
    with SessionLocal() as session:
        expenses = list(
            session.scalars(
                select(Expense).where(
                    Expense.vessel_id == vessel_id,
                    or_(Expense.category == DEFAULT_CATEGORY, Expense.category == ""),
                )
            )
        )
        if not expenses:
            log_event(logger, "categorization.vessel.empty", vessel_id=vessel_id)
            return 0

        suggestions = batch_categorize_expenses(
            [{"id": e.id, "description": e.description, "amount": str(e.total)} for e in expenses]
        )
        updated = 0
        for expense in expenses:
            suggestion = suggestions.get(expense.id)
            if not suggestion or suggestion.confidence < min_confidence:
                continue
            if suggestion.category_name == expense.category:
                continue
            update_expense(session, expense=expense, changes={"category": suggestion.category_name})
            updated += 1

    log_event(
        logger,
        "categorization.vessel.finish",
        vessel_id=vessel_id,
        expense_count=len(expenses),
        updated_count=updated,
    )
    return updated
