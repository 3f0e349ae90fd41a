from __future__ import annotations

import re

_SYMBOLS: dict[str, str] = {
    "$": "USD",
    "US$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "A$": "AUD",
    "C$": "CAD",
    "NZ$": "NZD",
    "CHF": "CHF",
}

_CODE_RE = re.compile(r"^[A-Z]{3}$")


def normalize_currency(raw: str | None) -> str | None:
    """Map a currency code or common symbol to an upper-case ISO-4217 code."""
    if not raw:
        return None
    s = raw.strip()
    if s in _SYMBOLS:
        return _SYMBOLS[s]
    s = s.upper()
    if s in _SYMBOLS:
        return _SYMBOLS[s]
    return s if _CODE_RE.match(s) else None
