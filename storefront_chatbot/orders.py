"""
Order lookup against the user's paginated order history.

The storefront has no search-by-code endpoint, so a code lookup walks the
order listing page by page. Page 1 is always scanned before anything else is
fetched and later pages are fetched one at a time, stopping at the first
match, at an empty page or at the traversal bound.

Failure kinds are kept apart:
  - page 1 cannot be read: the history is 'unavailable' (usually an auth
    problem), so the caller can ask the user to log in;
  - a later page cannot be read: traversal stops and the lookup reports
    'not_found' for the pages it did scan.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

from .client import StorefrontError
from .intents import ORDER_ID_PATTERN, canonical_code
from .models import OrderLookup
from .normalize import normalize_order, order_code_of, sort_recent
from .payloads import find_array, read_last_page, unwrap_record

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 10


class OrderHistoryUnavailable(Exception):
    """The first page of the order history could not be fetched."""


class OrderResolver:
    """Locates orders through the order listing and order detail endpoints."""

    def __init__(self, client: Any, *, max_pages: int = DEFAULT_MAX_PAGES) -> None:
        self._client = client
        self.max_pages = max_pages

    async def _fetch_page(self, page: int) -> Tuple[List[Any], Any]:
        payload = await self._client.get_user_orders(page=page)
        return find_array(payload) or [], payload

    @staticmethod
    def _match(records: List[Any], needle: str) -> Optional[Any]:
        for record in records:
            if order_code_of(record).upper() == needle:
                return record
        return None

    @staticmethod
    def _found(record: Any, pages_scanned: int) -> OrderLookup:
        return OrderLookup(
            outcome="found",
            order=normalize_order(record),
            raw=dict(record),
            pages_scanned=pages_scanned,
        )

    async def find_order_by_code(
        self, code: str, max_pages: Optional[int] = None
    ) -> OrderLookup:
        """
        Find the order whose code equals ``code`` after canonicalization.

        Args:
            code: Order code as typed by the user ("ord_ab12", "ORD-AB12").
            max_pages: Upper bound on listing pages to fetch; the reported
                last page of the listing lowers it further.

        Returns:
            OrderLookup with outcome 'found', 'not_found' or 'unavailable'.
        """
        needle = canonical_code(code)
        limit = self.max_pages if max_pages is None else max_pages
        if not needle:
            return OrderLookup(outcome="not_found")

        try:
            records, first_payload = await self._fetch_page(1)
        except StorefrontError as exc:
            logger.warning("Order history page 1 unavailable: %s", exc)
            return OrderLookup(outcome="unavailable")

        hit = self._match(records, needle)
        if hit is not None:
            return self._found(hit, 1)

        bound = max(1, min(limit, read_last_page(first_payload)))
        scanned = 1
        for page in range(2, bound + 1):
            try:
                records, _ = await self._fetch_page(page)
            except StorefrontError as exc:
                logger.warning(
                    "Stopping order code scan at page %d of %d: %s", page, bound, exc
                )
                break
            scanned = page
            hit = self._match(records, needle)
            if hit is not None:
                return self._found(hit, scanned)
            if not records:
                break
        logger.debug("Order code not found after %d page(s)", scanned)
        return OrderLookup(outcome="not_found", pages_scanned=scanned)

    async def find_order_by_id(self, order_id: str) -> OrderLookup:
        """Fetch one order directly by its numeric id."""
        order_id = str(order_id).strip()
        if not ORDER_ID_PATTERN.match(order_id):
            return OrderLookup(outcome="not_found")
        try:
            payload = await self._client.get_order_by_id(order_id)
        except StorefrontError as exc:
            if exc.status_code == 404:
                return OrderLookup(outcome="not_found")
            logger.warning("Order %s could not be fetched: %s", order_id, exc)
            return OrderLookup(outcome="unavailable")
        record = unwrap_record(payload)
        if not record:
            return OrderLookup(outcome="not_found")
        return self._found(record, 0)

    async def recent_orders(self, limit: int = 3) -> List[Any]:
        """Return up to ``limit`` raw orders from page 1, newest first."""
        try:
            records, _ = await self._fetch_page(1)
        except StorefrontError as exc:
            raise OrderHistoryUnavailable(str(exc)) from exc
        return sort_recent(records)[:limit]
