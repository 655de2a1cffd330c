"""
Helpers for reading loosely-shaped JSON responses from the storefront backend.

The backend wraps its listings in whatever envelope the endpoint happens to
use (``{"data": [...]}``, ``{"data": {"orders": [...]}}``, a bare list, ...).
Nothing here raises: a payload without a usable array or record simply yields
``None`` and callers treat that as an empty result.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Tuple

PRIORITY_KEYS: Tuple[str, ...] = ("data", "orders", "items", "list", "results")
DEFAULT_MAX_DEPTH = 4

# Where paginated listings have been seen to report their last page.
LAST_PAGE_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("meta", "last_page"),
    ("last_page",),
    ("data", "last_page"),
    ("data", "meta", "last_page"),
    ("meta", "pagination", "last_page"),
    ("pagination", "last_page"),
    ("data", "pagination", "last_page"),
)


def find_array(
    payload: Any, max_depth: int = DEFAULT_MAX_DEPTH, _depth: int = 0
) -> Optional[List[Any]]:
    """
    Locate the list of records inside an arbitrarily nested payload.

    A sequence is returned as is. For a mapping, the conventional envelope
    keys in ``PRIORITY_KEYS`` are probed first, in order, and only then the
    remaining keys in insertion order. A priority key holding an empty list
    wins: presence of the key matters, not its length.

    Returns None when no list exists within ``max_depth`` levels.
    """
    if payload is None or _depth > max_depth:
        return None
    if isinstance(payload, list):
        return payload
    if isinstance(payload, tuple):
        return list(payload)
    if not isinstance(payload, Mapping):
        return None

    for key in PRIORITY_KEYS:
        value = payload.get(key)
        if value is None:
            continue
        found = find_array(value, max_depth, _depth + 1)
        if found is not None:
            return found

    for key, value in payload.items():
        if key in PRIORITY_KEYS:
            continue
        found = find_array(value, max_depth, _depth + 1)
        if found is not None:
            return found
    return None


def dig(payload: Any, path: Sequence[str]) -> Any:
    """Follow ``path`` through nested mappings, returning None on any miss."""
    current = payload
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = int(value)
        elif isinstance(value, str):
            number = int(float(value.strip()))
        else:
            return None
    except (ValueError, OverflowError):
        return None
    return number if number > 0 else None


def read_last_page(payload: Any) -> int:
    """Return the last page a listing reports, defaulting to 1."""
    for path in LAST_PAGE_PATHS:
        last_page = _positive_int(dig(payload, path))
        if last_page is not None:
            return last_page
    return 1


def unwrap_record(payload: Any) -> Optional[Mapping[str, Any]]:
    """Return the single record of a detail response, enveloped or not."""
    if not isinstance(payload, Mapping):
        return None
    record = payload
    for _ in range(DEFAULT_MAX_DEPTH):
        inner = next(
            (
                record[key]
                for key in ("data", "order")
                if isinstance(record.get(key), Mapping)
            ),
            None,
        )
        if inner is None:
            break
        record = inner
    return record
