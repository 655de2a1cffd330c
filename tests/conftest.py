import random
from typing import Any, Dict, List, Optional

import pytest

from storefront_chatbot.client import StorefrontError
from storefront_chatbot.config import Settings


class FakeStorefront:
    """In-memory stand-in for StorefrontClient that records every call."""

    def __init__(
        self,
        pages: Optional[List[List[Dict[str, Any]]]] = None,
        last_page: Optional[int] = None,
    ) -> None:
        self.pages = pages or []
        self.last_page = last_page
        self.fail_pages: set = set()
        self.failing: set = set()
        self.orders_by_id: Dict[str, Dict[str, Any]] = {}
        self.catalog: Dict[str, List[Dict[str, Any]]] = {}
        self.categories: Dict[str, List[Dict[str, Any]]] = {}
        self.authors: Dict[str, List[Dict[str, Any]]] = {}
        self.featured_books: List[Dict[str, Any]] = []
        self.trending_rows: List[Dict[str, Any]] = []
        self.faq_rows: List[Dict[str, Any]] = []
        self.coupons: List[Dict[str, Any]] = []
        self.reply: Optional[str] = "Happy to help!"
        self.calls: List[tuple] = []

    @property
    def order_pages_fetched(self) -> List[int]:
        return [args[0] for name, args in self.calls if name == "get_user_orders"]

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.failing:
            raise StorefrontError("NETWORK_FAILURE", f"{name} failed")

    async def get_user_orders(self, page: int = 1) -> Any:
        self._record("get_user_orders", page)
        if page in self.fail_pages:
            raise StorefrontError("NETWORK_FAILURE", f"page {page} failed")
        records = self.pages[page - 1] if 0 < page <= len(self.pages) else []
        return {
            "data": records,
            "meta": {"current_page": page, "last_page": self.last_page or max(1, len(self.pages))},
        }

    async def get_order_by_id(self, order_id: str) -> Any:
        self._record("get_order_by_id", order_id)
        if order_id not in self.orders_by_id:
            raise StorefrontError("HTTP_ERROR", "not found", status_code=404)
        return {"data": self.orders_by_id[order_id]}

    async def search_books(self, query: str) -> Any:
        self._record("search_books", query)
        return {"data": self.catalog.get(query, [])}

    async def books_by_category(self, slug: str) -> Any:
        self._record("books_by_category", slug)
        return {"data": self.categories.get(slug, [])}

    async def books_by_author(self, name: str) -> Any:
        self._record("books_by_author", name)
        return {"data": {"data": self.authors.get(name, [])}}

    async def featured(self) -> Any:
        self._record("featured")
        return {"data": self.featured_books}

    async def trending(self, limit: int = 3) -> Any:
        self._record("trending", limit)
        return {"data": self.trending_rows[:limit]}

    async def faqs(self) -> Any:
        self._record("faqs")
        return {"faqs": self.faq_rows}

    async def active_coupons(self) -> Any:
        self._record("active_coupons")
        return {"data": self.coupons}

    async def chat(self, message: str, history: List[Dict[str, str]]) -> Any:
        self._record("chat", message, history)
        return {"reply": self.reply}

    async def contact(self, payload: Dict[str, Any]) -> Any:
        self._record("contact", payload)
        return {"ok": True}

    async def feedback(self, rating: int, notes: Optional[str] = None) -> Any:
        self._record("feedback", rating, notes)
        return {"ok": True}


@pytest.fixture
def settings():
    return Settings(
        api_base_url="http://shop.test/api",
        openai_api_key=None,
        max_order_pages=10,
    )


@pytest.fixture
def storefront():
    return FakeStorefront()


@pytest.fixture
def rng():
    return random.Random(7)


@pytest.fixture
def storefront_factory():
    return FakeStorefront
