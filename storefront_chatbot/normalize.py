"""
Display normalization of raw backend records.

Order and book records come back from the storefront with field names, casing
and money formats that differ between endpoints. The functions here map any
such mapping into the canonical view models in `models.py`. They never raise:
every field has a terminal default, so a strange record degrades into a
sparse view instead of breaking the conversation.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from numbers import Number
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import CanonicalBook, CanonicalOrder

CODE_FIELDS = (
    "code",
    "order_code",
    "order_number",
    "reference",
    "reference_code",
    "number",
)
STATUS_FIELDS = ("status", "order_status", "state", "orderState")
PAYMENT_FIELDS = ("payment_status", "paymentStatus", "pay_status", "payment_state")
TOTAL_FIELDS = (
    "total_amount",
    "total",
    "grand_total",
    "final_total",
    "amount",
    "price_total",
)
COUNT_FIELDS = ("items_count", "itemsCount", "quantity")
CREATED_FIELDS = ("created_at", "createdAt", "created_date")
IMAGE_FIELDS = (
    "image_url",
    "cover_url",
    "image",
    "thumbnail",
    "imageUrl",
    "cover",
    "thumb",
)

STATUS_LABELS: Dict[str, str] = {
    "pending": "Pending",
    "processing": "Processing",
    "shipped": "Handed to carrier",
    "delivering": "Out for delivery",
    "completed": "Completed",
    "canceled": "Cancelled",
    "cancelled": "Cancelled",
    "refunded": "Refunded",
}
PAYMENT_LABELS: Dict[str, str] = {
    "pending": "Unpaid",
    "paid": "Paid",
    "refunded": "Refunded",
}

_NON_DIGITS = re.compile(r"[^0-9]")


def _first_truthy(record: Mapping[str, Any], fields: Iterable[str]) -> Any:
    for field in fields:
        value = record.get(field)
        if value:
            return value
    return None


def _first_present(record: Mapping[str, Any], fields: Iterable[str]) -> Any:
    for field in fields:
        value = record.get(field)
        if value is not None:
            return value
    return None


def extract_int(value: Any) -> int:
    """
    Read a non-negative integer out of a number or a decorated string.

    Strings keep only their ASCII digits ("200.000 đ" -> 200000); anything
    that yields no digits, and any non-numeric type, is 0.
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, str):
        digits = _NON_DIGITS.sub("", value)
        if not digits:
            return 0
        try:
            return int(digits)
        except ValueError:
            # Past the interpreter's int conversion digit limit.
            return 0
    if isinstance(value, Number):
        try:
            return max(0, int(value))  # type: ignore[call-overload]
        except (TypeError, ValueError, OverflowError):
            return 0
    return 0


def parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def order_code_of(record: Any) -> str:
    """Return the record's own order code, or an empty string."""
    if not isinstance(record, Mapping):
        return ""
    value = _first_truthy(record, CODE_FIELDS)
    return str(value).strip() if value is not None else ""


def normalize_order(record: Any) -> CanonicalOrder:
    """Map a raw order record of any shape into a `CanonicalOrder`."""
    if not isinstance(record, Mapping):
        record = {}
    order_id = record.get("id")
    if isinstance(order_id, bool) or not isinstance(order_id, (int, str)):
        order_id = None

    code = order_code_of(record)
    if not code:
        code = f"ORD-{order_id}" if order_id not in (None, "") else "ORD-UNKNOWN"

    status = str(_first_truthy(record, STATUS_FIELDS) or "pending")
    status_label = STATUS_LABELS.get(status.lower(), status)

    payment = _first_truthy(record, PAYMENT_FIELDS)
    if payment is None:
        payment = "paid" if record.get("paid") else "pending"
    payment = str(payment)
    payment_label = PAYMENT_LABELS.get(payment.lower(), payment)

    count = _first_truthy(record, COUNT_FIELDS)
    if count is None:
        items = record.get("items")
        count = len(items) if isinstance(items, list) else record.get("total_items")

    return CanonicalOrder(
        id=order_id,
        code=code,
        status=status,
        status_label=status_label,
        payment_status=payment,
        payment_label=payment_label,
        total=extract_int(_first_present(record, TOTAL_FIELDS)),
        item_count=extract_int(count),
        created_at=parse_timestamp(_first_truthy(record, CREATED_FIELDS)),
    )


def _sort_key(record: Any) -> float:
    created = None
    if isinstance(record, Mapping):
        created = parse_timestamp(_first_truthy(record, CREATED_FIELDS))
    if created is None:
        return 0.0
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created.timestamp()


def sort_recent(records: Iterable[Any]) -> List[Any]:
    """Order raw records newest first; undated records sink to the end."""
    return sorted(records, key=_sort_key, reverse=True)


def absolute_url(url: Any, api_base: str = "") -> str:
    """Make an image path absolute against the storefront API origin."""
    if not url:
        return ""
    text = str(url).strip().replace("\\", "/")
    if re.match(r"^https?://", text, re.IGNORECASE):
        return text
    if text.startswith("//"):
        return "https:" + text
    if not api_base:
        return "/" + text.lstrip("/")
    return f"{api_base.rstrip('/')}/{text.lstrip('/')}"


def _image_of(book: Mapping[str, Any]) -> Any:
    image = _first_truthy(book, IMAGE_FIELDS)
    if image:
        return image
    images = book.get("images")
    if isinstance(images, list) and images and isinstance(images[0], Mapping):
        return images[0].get("url")
    return None


def normalize_book(record: Any, api_base: str = "") -> CanonicalBook:
    """Map a catalog or trending row into a `CanonicalBook`."""
    if not isinstance(record, Mapping):
        return CanonicalBook()
    book = record.get("book") if isinstance(record.get("book"), Mapping) else record

    author = book.get("author_name")
    if not author:
        nested = book.get("author")
        author = nested.get("name") if isinstance(nested, Mapping) else nested
    book_id = book.get("id")
    if isinstance(book_id, bool) or not isinstance(book_id, (int, str)):
        book_id = None
    price = book.get("price")

    return CanonicalBook(
        id=book_id,
        title=str(book.get("title") or ""),
        author_name=str(author) if author else None,
        price=extract_int(price) if price is not None else None,
        image_url=absolute_url(_image_of(book), api_base),
        sold=extract_int(record["sold"]) if record.get("sold") is not None else None,
        revenue=(
            extract_int(record["revenue"])
            if record.get("revenue") is not None
            else None
        ),
    )
