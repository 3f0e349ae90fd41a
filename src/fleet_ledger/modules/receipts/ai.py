from __future__ import annotations

import json
import math
from typing import Any

import httpx

from fleet_ledger.core.config import settings
from fleet_ledger.core.currencies import normalize_currency
from fleet_ledger.core.inference import InferenceError, chat_completion_async, parse_json_object
from fleet_ledger.modules.expenses.categories import EXPENSE_CATEGORIES, normalize_category
from fleet_ledger.modules.receipts.coercion import amount_to_decimal
from fleet_ledger.modules.receipts.schemas import ReceiptExtraction, ReceiptItem

_MAX_ITEMS = 200
_MAX_REASONS = 20

_EXTRACTION_SYSTEM_PROMPT = (
    "You are an expert receipt analyzer for a marine vessel expense management system. "
    "Extract the following information from the receipt image: "
    "1. Vendor name "
    "2. Date of purchase "
    "3. Total amount "
    "4. Individual items/services with their costs "
    "5. Receipt/Invoice number if available "
    "6. Tax amount if specified "
    "7. Currency "
    "8. Payment method if mentioned "
    "9. Suggest an expense category (" + ", ".join(EXPENSE_CATEGORIES) + ") "
    "10. Flag any suspicious elements (unusual amounts, unclear items, etc.) "
    "Respond with valid JSON in this exact format: "
    "{ "
    '"vendor": string, '
    '"date": string (YYYY-MM-DD), '
    '"total": number, '
    '"items": [{ "description": string, "amount": number }], '
    '"receiptNumber": string (optional), '
    '"taxAmount": number (optional), '
    '"currency": string (optional), '
    '"paymentMethod": string (optional), '
    '"category": string (one of the predefined categories), '
    '"suspiciousElements": string[] (optional list of concerns) '
    "}"
)

_MATCH_SYSTEM_PROMPT = (
    "You are an expert at matching receipts to expense records. "
    "Compare the receipt data with the expense record and determine the likelihood they "
    "represent the same transaction. "
    "Consider factors like vendor name similarity, date proximity, amount match, and "
    "description relevance. "
    "Provide a confidence score from 0 to 1 (0 = definitely not a match, 1 = definitely a match) "
    "and list specific reasons supporting your assessment. "
    'Respond with JSON only: { "confidence": number, "reasons": string[] }'
)


async def extract_receipt(
    image_b64: str,
    *,
    content_type: str = "image/jpeg",
    client: httpx.AsyncClient | None = None,
) -> ReceiptExtraction:
    """
    Send a receipt image to the vision model and return the validated extraction.

    Raises InferenceError when the call fails or the body is not a JSON object;
    there is no fallback extraction.
    """
    messages = [
        {"role": "system", "content": _EXTRACTION_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": [
                {
                    "type": "text",
                    "text": (
                        "Please analyze this receipt image and extract all relevant "
                        "information for expense tracking:"
                    ),
                },
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:{content_type};base64,{image_b64}"},
                },
            ],
        },
    ]
    content = await chat_completion_async(
        messages, max_tokens=settings.receipt_ai_max_tokens, client=client
    )
    obj = parse_json_object(content)
    if not isinstance(obj, dict):
        raise InferenceError("Receipt analysis did not return a JSON object")
    return sanitize_receipt_extraction(obj)


async def compare_receipt_to_expense(
    extraction: ReceiptExtraction,
    expense_view: dict[str, Any],
    *,
    client: httpx.AsyncClient | None = None,
) -> tuple[float, list[str]]:
    receipt_json = json.dumps(
        extraction.model_dump(by_alias=True, exclude_none=True), indent=2, default=str
    )
    expense_json = json.dumps(expense_view, indent=2, default=str)
    messages = [
        {"role": "system", "content": _MATCH_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": f"Receipt data: {receipt_json}\n\nExpense record: {expense_json}",
        },
    ]
    content = await chat_completion_async(messages, client=client)
    obj = parse_json_object(content)
    if not isinstance(obj, dict):
        raise InferenceError("Match scoring did not return a JSON object")
    return _confidence(obj.get("confidence")), _reasons(obj.get("reasons"))


def sanitize_receipt_extraction(obj: dict[str, Any]) -> ReceiptExtraction:
    vendor = _text(obj.get("vendor"), max_len=200) or "Unknown"
    raw_date = obj.get("date")
    date_text = _text(raw_date, max_len=100) if not isinstance(raw_date, bool) else None

    items: list[ReceiptItem] = []
    raw_items = obj.get("items")
    if isinstance(raw_items, list):
        for raw in raw_items[:_MAX_ITEMS]:
            if not isinstance(raw, dict):
                continue
            items.append(
                ReceiptItem(
                    description=_text(raw.get("description"), max_len=300) or "Item",
                    amount=_number(raw.get("amount")) or 0.0,
                )
            )

    suspicious: list[str] | None = None
    raw_flags = obj.get("suspiciousElements")
    if isinstance(raw_flags, str):
        raw_flags = [raw_flags]
    if isinstance(raw_flags, list):
        flags = [f for f in (_text(x, max_len=300) for x in raw_flags[:20]) if f]
        suspicious = flags or None

    currency_raw = obj.get("currency")
    return ReceiptExtraction(
        vendor=vendor,
        date=date_text or "",
        total=_number(obj.get("total")) or 0.0,
        items=items,
        category=normalize_category(obj.get("category")),
        receipt_number=_text(obj.get("receiptNumber"), max_len=100),
        tax_amount=_number(obj.get("taxAmount")),
        currency=normalize_currency(currency_raw) if isinstance(currency_raw, str) else None,
        payment_method=_text(obj.get("paymentMethod"), max_len=50),
        suspicious_elements=suspicious,
    )


def _text(raw: Any, *, max_len: int) -> str | None:
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, (int, float)):
        raw = str(raw)
    if not isinstance(raw, str):
        return None
    s = raw.strip()
    return s[:max_len] if s else None


def _number(raw: Any) -> float | None:
    amount = amount_to_decimal(raw)
    if amount is None:
        return None
    value = float(amount)
    return value if math.isfinite(value) else None


def _confidence(raw: Any) -> float:
    if isinstance(raw, bool):
        return 0.0
    try:
        conf = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(conf) or conf < 0.0:
        return 0.0
    return min(conf, 1.0)


def _reasons(raw: Any) -> list[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    out: list[str] = []
    for x in raw[:_MAX_REASONS]:
        if isinstance(x, str) and x.strip():
            out.append(x.strip()[:500])
    return out
