from __future__ import annotations

import asyncio
import json

import pytest


def _stub_completion(monkeypatch, content: str, calls: list | None = None):
    from fleet_ledger.modules.receipts import ai

    async def _stub(messages, *, max_tokens=None, client=None):
        if calls is not None:
            calls.append({"messages": messages, "max_tokens": max_tokens})
        return content

    monkeypatch.setattr(ai, "chat_completion_async", _stub)
    return ai


def test_extract_receipt_sanitizes_model_output(monkeypatch):
    calls: list = []
    ai = _stub_completion(
        monkeypatch,
        json.dumps(
            {
                "vendor": "  Harbor Fuel Dock ",
                "date": "2024-03-10",
                "total": "1,234.50",
                "items": [
                    {"description": "Diesel", "amount": 1200},
                    "not-an-item",
                    {"amount": "34.5"},
                ],
                "receiptNumber": 88123,
                "currency": "$",
                "category": "fuel",
                "suspiciousElements": [],
            }
        ),
        calls,
    )

    extraction = asyncio.run(ai.extract_receipt("aGVsbG8=", content_type="image/png"))

    assert extraction.vendor == "Harbor Fuel Dock"
    assert extraction.date == "2024-03-10"
    assert extraction.total == 1234.5
    assert [(i.description, i.amount) for i in extraction.items] == [
        ("Diesel", 1200.0),
        ("Item", 34.5),
    ]
    assert extraction.receipt_number == "88123"
    assert extraction.currency == "USD"
    assert extraction.category == "Fuel"
    assert extraction.suspicious_elements is None

    assert calls[0]["max_tokens"] == 1000
    image_part = calls[0]["messages"][1]["content"][1]
    assert image_part["image_url"]["url"] == "data:image/png;base64,aGVsbG8="


def test_extract_receipt_defaults_missing_fields(monkeypatch):
    ai = _stub_completion(
        monkeypatch, '{"category": "Yachting", "suspiciousElements": "Total smudged"}'
    )

    extraction = asyncio.run(ai.extract_receipt("aGVsbG8="))

    assert extraction.vendor == "Unknown"
    assert extraction.date == ""
    assert extraction.total == 0.0
    assert extraction.items == []
    assert extraction.category is None
    assert extraction.suspicious_elements == ["Total smudged"]


@pytest.mark.parametrize("content", ["[1, 2, 3]", "no json here", '"just a string"'])
def test_extract_receipt_rejects_non_object_output(monkeypatch, content):
    from fleet_ledger.core.inference import InferenceError

    ai = _stub_completion(monkeypatch, content)

    with pytest.raises(InferenceError):
        asyncio.run(ai.extract_receipt("aGVsbG8="))


def test_extraction_serializes_with_camel_case_keys():
    from fleet_ledger.modules.receipts.schemas import ReceiptExtraction

    extraction = ReceiptExtraction(
        vendor="Shell",
        date="2024-03-10",
        total=10.0,
        receipt_number="A1",
        suspicious_elements=["odd"],
    )

    dumped = extraction.model_dump(by_alias=True)
    assert dumped["receiptNumber"] == "A1"
    assert dumped["suspiciousElements"] == ["odd"]
