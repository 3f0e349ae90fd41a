from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Sequence
from datetime import timedelta
from decimal import Decimal
from typing import Any

import httpx

from fleet_ledger.core.config import settings
from fleet_ledger.core.logging import get_logger, log_event, monotonic_ms
from fleet_ledger.modules.expenses.models import Expense
from fleet_ledger.modules.receipts.ai import compare_receipt_to_expense
from fleet_ledger.modules.receipts.coercion import (
    amount_to_decimal,
    ensure_utc,
    parse_receipt_datetime,
)
from fleet_ledger.modules.receipts.schemas import CandidateMatch, ReceiptExtraction

logger = get_logger(__name__)

# Fixed pre-filter window; both bounds are inclusive.
MAX_DAYS_APART = 7
MAX_AMOUNT_DIFFERENCE = Decimal("0.10")


def filter_candidates(
    extraction: ReceiptExtraction, expenses: Iterable[Expense]
) -> list[Expense]:
    """
    Keep expenses within MAX_DAYS_APART days and MAX_AMOUNT_DIFFERENCE (relative to
    the receipt total) of the receipt.

    A receipt whose date cannot be parsed, or whose total is zero, cannot be matched
    and yields no candidates.
    """
    receipt_at = parse_receipt_datetime(extraction.date)
    receipt_total = amount_to_decimal(extraction.total)
    if receipt_at is None or receipt_total is None or receipt_total == 0:
        return []

    window = timedelta(days=MAX_DAYS_APART)
    out: list[Expense] = []
    for expense in expenses:
        if expense.expense_date is None or expense.total is None:
            continue
        if abs(ensure_utc(expense.expense_date) - receipt_at) > window:
            continue
        expense_total = amount_to_decimal(expense.total)
        if expense_total is None:
            continue
        if abs(expense_total - receipt_total) / abs(receipt_total) > MAX_AMOUNT_DIFFERENCE:
            continue
        out.append(expense)
    return out


def expense_match_view(expense: Expense) -> dict[str, Any]:
    return {
        "id": expense.id,
        "date": ensure_utc(expense.expense_date).isoformat(),
        "amount": str(expense.total),
        "description": expense.description,
        "vendor": expense.vendor_name,
        "category": expense.category,
        "status": expense.status,
    }


def rank_matches(matches: Iterable[CandidateMatch]) -> list[CandidateMatch]:
    # sorted() is stable, so equal confidences keep their input order
    return sorted(matches, key=lambda m: m.confidence, reverse=True)


async def _score_one(
    extraction: ReceiptExtraction, expense: Expense, client: httpx.AsyncClient
) -> CandidateMatch:
    try:
        confidence, reasons = await compare_receipt_to_expense(
            extraction, expense_match_view(expense), client=client
        )
    except Exception as e:  # noqa: BLE001
        log_event(
            logger,
            "receipt.match.candidate_failure",
            level=logging.WARNING,
            expense_id=expense.id,
            error_type=type(e).__name__,
            error=str(e)[:300],
        )
        return CandidateMatch(expense_id=expense.id, confidence=0.0, reasons=[])
    return CandidateMatch(expense_id=expense.id, confidence=confidence, reasons=reasons)


async def score_candidates(
    extraction: ReceiptExtraction, candidates: Sequence[Expense]
) -> list[CandidateMatch]:
    """
    Score every candidate concurrently and return them ranked by confidence.

    A failed comparison scores 0 with no reasons instead of failing the batch. Each
    comparison is bounded by the inference deadline, so a disconnected client leaves
    at most one deadline of work behind.
    """
    if not candidates:
        return []
    start = time.monotonic()
    timeout = float(settings.receipt_ai_timeout_seconds or 30.0)
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        results = await asyncio.gather(
            *(_score_one(extraction, expense, client) for expense in candidates)
        )
    ranked = rank_matches(results)
    log_event(
        logger,
        "receipt.match.scored",
        candidate_count=len(candidates),
        top_confidence=ranked[0].confidence if ranked else None,
        duration_ms=monotonic_ms(start),
    )
    return ranked
