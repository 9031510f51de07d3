from __future__ import annotations

import re
from collections.abc import Iterable

from app.motobooster.modules.customers.models import ALL_TYPES, VEHICLE_TYPE_OPTIONS

CUSTOMER_ID_PREFIX = "CUS-"
_CUSTOMER_ID_RE = re.compile(r"^CUS-(\d{3,})$")


def parse_customer_number(customer_id: str | None) -> int | None:
    """
    Numeric suffix of a business id ("CUS-012" -> 12).
    Ids that do not follow the CUS-NNN pattern are ignored (None).
    """
    m = _CUSTOMER_ID_RE.match((customer_id or "").strip())
    return int(m.group(1)) if m else None


def next_customer_id(existing: Iterable[str | None]) -> str:
    """
    Max existing numeric suffix + 1, zero-padded to 3 digits.

        >>> next_customer_id(["CUS-001", "CUS-002", "CUS-005"])
        'CUS-006'
        >>> next_customer_id([])
        'CUS-001'

    Not safe under concurrent creation: two callers seeing the same snapshot
    get the same id.
    """
    numbers = [n for n in (parse_customer_number(c) for c in existing) if n is not None]
    return f"{CUSTOMER_ID_PREFIX}{max(numbers, default=0) + 1:03d}"


def clean_vehicle_types(types: Iterable[str]) -> frozenset[str]:
    """Drop blanks and the "All Types" pseudo-option."""
    return frozenset(t.strip() for t in types if t and t.strip() and t.strip() != ALL_TYPES)


def toggle_vehicle_type(selected: Iterable[str], vehicle_type: str) -> set[str]:
    """
    Form behaviour for the vehicle type checkboxes. "All Types" selects or
    clears every option; it stays checked only while every real option is.
    """
    current = set(selected)
    if vehicle_type == ALL_TYPES:
        if ALL_TYPES in current:
            return set()
        return set(VEHICLE_TYPE_OPTIONS) | {ALL_TYPES}

    if vehicle_type in current:
        current.discard(vehicle_type)
        current.discard(ALL_TYPES)
    else:
        current.add(vehicle_type)
        if all(t in current for t in VEHICLE_TYPE_OPTIONS):
            current.add(ALL_TYPES)
    return current
