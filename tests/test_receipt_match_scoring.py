from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from fleet_ledger.modules.expenses.models import Expense
from fleet_ledger.modules.receipts.schemas import ReceiptExtraction


def _expense(expense_id: int) -> Expense:
    return Expense(
        id=expense_id,
        vessel_id=1,
        expense_date=datetime(2024, 3, 10, tzinfo=UTC),
        total=Decimal("500"),
        description=f"Expense {expense_id}",
        category="Fuel",
        status="pending",
    )


_RECEIPT = ReceiptExtraction(vendor="Harbor Fuel", date="2024-03-10", total=500.0)


def test_scores_are_ranked_by_confidence(monkeypatch):
    from fleet_ledger.modules.receipts import matching

    scores = {1: 0.2, 2: 0.9, 3: 0.5}

    async def _stub(extraction, view, *, client=None):
        return scores[view["id"]], [f"reason {view['id']}"]

    monkeypatch.setattr(matching, "compare_receipt_to_expense", _stub)

    ranked = asyncio.run(matching.score_candidates(_RECEIPT, [_expense(i) for i in (1, 2, 3)]))

    assert [m.expense_id for m in ranked] == [2, 3, 1]
    assert [m.confidence for m in ranked] == [0.9, 0.5, 0.2]
    assert ranked[0].reasons == ["reason 2"]


def test_failed_candidate_scores_zero_without_failing_batch(monkeypatch):
    from fleet_ledger.core.inference import InferenceError
    from fleet_ledger.modules.receipts import matching

    async def _stub(extraction, view, *, client=None):
        if view["id"] == 2:
            raise InferenceError("Inference request timed out after 30s")
        return 0.8, ["vendor matches"]

    monkeypatch.setattr(matching, "compare_receipt_to_expense", _stub)

    ranked = asyncio.run(matching.score_candidates(_RECEIPT, [_expense(1), _expense(2)]))

    assert len(ranked) == 2
    assert ranked[0].expense_id == 1
    assert ranked[1].expense_id == 2
    assert ranked[1].confidence == 0.0
    assert ranked[1].reasons == []


def test_candidates_are_scored_concurrently(monkeypatch):
    from fleet_ledger.modules.receipts import matching

    started: list[int] = []
    gate: dict[str, asyncio.Event] = {}

    async def _stub(extraction, view, *, client=None):
        started.append(view["id"])
        if len(started) == 3:
            gate["all_started"].set()
        # Sequential scoring would never reach three in-flight calls.
        await asyncio.wait_for(gate["all_started"].wait(), timeout=2)
        return 0.5, []

    monkeypatch.setattr(matching, "compare_receipt_to_expense", _stub)

    async def _run():
        gate["all_started"] = asyncio.Event()
        return await matching.score_candidates(_RECEIPT, [_expense(i) for i in (1, 2, 3)])

    ranked = asyncio.run(_run())

    assert sorted(started) == [1, 2, 3]
    assert all(m.confidence == 0.5 for m in ranked)


def test_no_candidates_makes_no_calls(monkeypatch):
    from fleet_ledger.modules.receipts import matching

    async def _boom(*args, **kwargs):
        raise AssertionError("should not be called")

    monkeypatch.setattr(matching, "compare_receipt_to_expense", _boom)

    assert asyncio.run(matching.score_candidates(_RECEIPT, [])) == []


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        ('{"confidence": 1.7, "reasons": "same vendor"}', (1.0, ["same vendor"])),
        ('{"confidence": -0.3, "reasons": ["no"]}', (0.0, ["no"])),
        ('{"confidence": "high"}', (0.0, [])),
        (
            'Sure! {"confidence": 0.42, "reasons": ["amount within 1%", ""]}',
            (0.42, ["amount within 1%"]),
        ),
    ],
)
def test_comparison_output_is_coerced(monkeypatch, content, expected):
    from fleet_ledger.modules.receipts import ai

    async def _stub(messages, *, max_tokens=None, client=None):
        return content

    monkeypatch.setattr(ai, "chat_completion_async", _stub)

    result = asyncio.run(ai.compare_receipt_to_expense(_RECEIPT, {"id": 1}))

    assert result == expected
