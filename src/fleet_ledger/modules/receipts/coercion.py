"""
Tolerant date and amount coercion.

Receipt fields arrive from two untrusted sources: the vision model and client
re-submissions of a previously suggested expense. Nothing in this module raises;
unusable input degrades to "now" for dates and "0" for amounts.
"""

from __future__ import annotations

import math
import re
from datetime import UTC, date, datetime, time
from decimal import Decimal, InvalidOperation

from fleet_ledger.core.logging import get_logger, log_event

logger = get_logger(__name__)

# Epoch-millisecond bounds accepted for numeric dates (1970-01-01 .. 2100-01-01).
_MIN_EPOCH_MS = 0
_MAX_EPOCH_MS = 4_102_444_800_000


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes (e.g. read back from SQLite) are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _is_plausible_date(d: date) -> bool:
    return 1970 <= d.year <= 2100


def parse_date_any(s: str | None) -> date | None:
    if not s:
        return None
    raw = " ".join(str(s).split())
    try:
        d = datetime.strptime(raw, "%Y-%m-%d").date()
        return d if _is_plausible_date(d) else None
    except ValueError:
        pass
    # 05 Sep 2025 / 05 September 2025
    for fmt in ("%d %b %Y", "%d %B %Y"):
        try:
            d = datetime.strptime(raw, fmt).date()
            return d if _is_plausible_date(d) else None
        except ValueError:
            continue
    # Sep 05, 2025 / September 5, 2025
    for fmt in ("%b %d, %Y", "%B %d, %Y", "%b %d %Y", "%B %d %Y"):
        try:
            d = datetime.strptime(raw, fmt).date()
            return d if _is_plausible_date(d) else None
        except ValueError:
            continue
    # 2025/03/01 and 2025.03.01
    m = re.fullmatch(r"([0-9]{4})[/.]([0-9]{1,2})[/.]([0-9]{1,2})", raw)
    if m:
        try:
            d = date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        except ValueError:
            return None
        return d if _is_plausible_date(d) else None
    # 12/31/2025 or 31/12/2025 (month-first wins when ambiguous)
    m = re.fullmatch(r"([0-9]{1,2})[/.-]([0-9]{1,2})[/.-]([0-9]{4})", raw)
    if m:
        a, b, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
        for month, day in ((a, b), (b, a)):
            try:
                d = date(year, month, day)
            except ValueError:
                continue
            return d if _is_plausible_date(d) else None
    return None


def parse_receipt_datetime(raw: object) -> datetime | None:
    """Parse a date-ish value to an aware UTC datetime, or None when unrecognized."""
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    if isinstance(raw, date):
        return datetime.combine(raw, time.min, tzinfo=UTC)
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw) or not _MIN_EPOCH_MS <= raw <= _MAX_EPOCH_MS:
            return None
        return datetime.fromtimestamp(raw / 1000, tz=UTC)
    if not isinstance(raw, str):
        return None

    s = raw.strip()
    if not s:
        return None
    iso = s[:-1] + "+00:00" if s.endswith(("Z", "z")) else s
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        parsed = None
    if parsed is not None:
        return ensure_utc(parsed) if _is_plausible_date(parsed.date()) else None

    d = parse_date_any(s)
    if d is None:
        return None
    return datetime.combine(d, time.min, tzinfo=UTC)


def coerce_expense_date(raw: object, *, now: datetime | None = None) -> datetime:
    parsed = parse_receipt_datetime(raw)
    if parsed is not None:
        return parsed
    log_event(
        logger,
        "expense.date.invalid",
        raw_value=repr(raw)[:100],
        raw_type=type(raw).__name__,
    )
    return now or datetime.now(UTC)


def parse_decimal_amount(raw: str) -> Decimal | None:
    s = str(raw or "").strip()
    if not s:
        return None
    negative = s.startswith("-") or (s.startswith("(") and s.endswith(")"))
    s = s.replace("\u202f", " ").replace("\xa0", " ")
    s = re.sub(r"[^0-9,.' ]", "", s)
    s = s.replace(" ", "").replace("'", "")
    if not s or not any(ch.isdigit() for ch in s):
        return None

    if "," in s and "." in s:
        decimal_sep = "," if s.rfind(",") > s.rfind(".") else "."
        thousands_sep = "." if decimal_sep == "," else ","
        normalized = s.replace(thousands_sep, "").replace(decimal_sep, ".")
    elif "," in s:
        idx = s.rfind(",")
        digits_after = len(s) - idx - 1
        if s.count(",") == 1 and digits_after in {1, 2}:
            normalized = s.replace(",", ".")
        else:
            normalized = s.replace(",", "")
    elif s.count(".") > 1:
        normalized = s.replace(".", "")
    else:
        normalized = s

    try:
        amount = Decimal(normalized)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return -amount if negative else amount


def amount_to_decimal(raw: object) -> Decimal | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, Decimal):
        return raw if raw.is_finite() else None
    if isinstance(raw, int):
        return Decimal(raw)
    if isinstance(raw, float):
        # str() keeps the shortest repr, so 500.1 stays 500.1 rather than its binary expansion
        return Decimal(str(raw)) if math.isfinite(raw) else None
    if isinstance(raw, str):
        return parse_decimal_amount(raw)
    return None


def format_amount(amount: Decimal) -> str:
    if amount == amount.to_integral_value():
        return str(int(amount))
    return format(amount.normalize(), "f")


def coerce_amount(raw: object) -> str:
    amount = amount_to_decimal(raw)
    if amount is None:
        return "0"
    return format_amount(amount)
