"""Response-shape agnostic price extraction.

The upstream price API does not promise a stable JSON layout, so the
extractor tries a fixed sequence of strategies and keeps the first record
one of them yields:

1. flat numeric ``petrol``/``diesel`` fields on an object,
2. the last snapshot of a non-empty list,
3. a case-insensitive depth-first key scan,
4. the first two price-like numbers in the serialised payload.

No strategy raises; an unrecognised payload yields ``None``.
"""

from __future__ import annotations

import json
import math
import re
from datetime import datetime
from typing import Any, Iterable

from fuelkl.common.models import Number, PriceRecord
from fuelkl.common.time_utils import utc_timestamp_iso

PETROL_KEYS = ("petrol", "petrol_price", "petrolPrice")
DIESEL_KEYS = ("diesel", "diesel_price", "dieselPrice")
TIMESTAMP_KEYS = ("updated_at", "updated")
PRICE_TEXT_PATTERN = re.compile(r"\d{2,3}\.\d{1,2}")

_NUMERIC_LITERAL = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_CONTAINERS = (dict, list, tuple)


def _is_real_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


def coerce_number(value: Any) -> float | None:
    """Numeric value of ``value``, or None when it is not a finite number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not _NUMERIC_LITERAL.fullmatch(text):
            return None
        number = float(text)
    else:
        return None
    return number if math.isfinite(number) else None


def _timestamp(obj: dict, keys: Iterable[str], fallback: str) -> str:
    for key in keys:
        value = obj.get(key)
        if isinstance(value, str) and value:
            return value
    return fallback


def _first_number(obj: dict, keys: Iterable[str]) -> float | None:
    for key in keys:
        number = coerce_number(obj.get(key))
        if number is not None:
            return number
    return None


def _from_flat_fields(data: Any, now_iso: str) -> PriceRecord | None:
    if not isinstance(data, dict):
        return None
    petrol = data.get("petrol")
    diesel = data.get("diesel")
    if not (_is_real_number(petrol) and _is_real_number(diesel)):
        return None
    return PriceRecord(petrol=petrol, diesel=diesel, updated_at=_timestamp(data, ("updated_at",), now_iso))


def _from_last_snapshot(data: Any, now_iso: str) -> PriceRecord | None:
    if not isinstance(data, (list, tuple)) or not data:
        return None
    candidate = data[-1]
    if not isinstance(candidate, dict):
        return None
    petrol = _first_number(candidate, PETROL_KEYS)
    diesel = _first_number(candidate, DIESEL_KEYS)
    if petrol is None and diesel is None:
        return None
    # A single fuel value is accepted; the other is zero-filled.
    return PriceRecord(
        petrol=petrol if petrol is not None else 0.0,
        diesel=diesel if diesel is not None else 0.0,
        updated_at=_timestamp(candidate, TIMESTAMP_KEYS, now_iso),
    )


def _match_level(obj: dict, now_iso: str) -> PriceRecord | None:
    petrol: Number | None = None
    diesel: Number | None = None
    for key, value in obj.items():
        lowered = str(key).lower()
        if "petrol" in lowered or lowered == "p":
            if petrol is None:
                petrol = coerce_number(value)
            continue
        if diesel is None and ("diesel" in lowered or lowered == "d"):
            diesel = coerce_number(value)
    if petrol is None or diesel is None:
        return None
    return PriceRecord(petrol=petrol, diesel=diesel, updated_at=_timestamp(obj, TIMESTAMP_KEYS, now_iso))


def _from_deep_scan(data: Any, now_iso: str) -> PriceRecord | None:
    # Explicit stack: pre-order, children in key order, cycles visited once.
    stack: list[Any] = [data]
    seen: set[int] = set()
    while stack:
        node = stack.pop()
        if not isinstance(node, _CONTAINERS) or id(node) in seen:
            continue
        seen.add(id(node))
        if isinstance(node, dict):
            record = _match_level(node, now_iso)
            if record is not None:
                return record
            children = list(node.values())
        else:
            children = list(node)
        stack.extend(reversed([child for child in children if isinstance(child, _CONTAINERS)]))
    return None


def _serialise(data: Any) -> str:
    try:
        return json.dumps(data, ensure_ascii=False, default=str)
    except (TypeError, ValueError, RecursionError):
        pass
    try:
        return repr(data)
    except RecursionError:
        return ""


def _from_numeric_text(data: Any, now_iso: str) -> PriceRecord | None:
    numbers = PRICE_TEXT_PATTERN.findall(_serialise(data))
    if len(numbers) < 2:
        return None
    return PriceRecord(petrol=float(numbers[0]), diesel=float(numbers[1]), updated_at=now_iso)


STRATEGIES = (
    _from_flat_fields,
    _from_last_snapshot,
    _from_deep_scan,
    _from_numeric_text,
)


def extract_prices(data: Any, now: datetime | None = None) -> PriceRecord | None:
    now_iso = utc_timestamp_iso(now)
    for strategy in STRATEGIES:
        record = strategy(data, now_iso)
        if record is not None:
            return record
    return None
