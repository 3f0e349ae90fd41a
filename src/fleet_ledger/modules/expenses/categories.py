from __future__ import annotations

EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Fuel",
    "Provisions",
    "Maintenance",
    "Crew Salaries",
    "Insurance",
    "Dockage",
    "Repairs",
    "Supplies",
    "Communications",
    "Travel",
    "Entertainment",
    "Administration",
    "Medical",
    "Safety",
    "Training",
    "Other",
)

DEFAULT_CATEGORY = "Other"

# Short codes used by the categorization prompts.
CATEGORY_CODES: dict[str, str] = {
    "FUE": "Fuel",
    "MNT": "Maintenance",
    "PRV": "Provisions",
    "CRW": "Crew Salaries",
    "INS": "Insurance",
    "DOC": "Dockage",
    "COM": "Communications",
    "TRV": "Travel",
    "ENT": "Entertainment",
    "ADM": "Administration",
    "MED": "Medical",
    "SAF": "Safety",
    "TRN": "Training",
    "OTH": "Other",
}

_BY_LOWER = {c.lower(): c for c in EXPENSE_CATEGORIES}


def normalize_category(raw: object) -> str | None:
    if not isinstance(raw, str):
        return None
    key = " ".join(raw.split()).lower()
    if not key:
        return None
    if key in _BY_LOWER:
        return _BY_LOWER[key]
    return CATEGORY_CODES.get(key.upper())


def category_for_code(code: object) -> str:
    if isinstance(code, str):
        name = CATEGORY_CODES.get(code.strip().upper())
        if name:
            return name
    return DEFAULT_CATEGORY
