"""Async client for the storefront REST API the assistant reads from."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

__all__ = ["StorefrontClient", "StorefrontError"]

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class StorefrontError(RuntimeError):
    """A storefront call failed at the transport or HTTP level."""

    def __init__(
        self, code: str, message: str, status_code: Optional[int] = None
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"StorefrontError(code={self.code!r}, status_code={self.status_code!r})"


class StorefrontClient:
    """
    Thin wrapper over the storefront endpoints used by the chat assistant.

    Responses are returned as decoded JSON without interpretation; the
    payload helpers take care of the envelope shapes.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # Orders

    async def get_user_orders(self, page: int = 1) -> Any:
        return await self._request("GET", "/orders", params={"page": page})

    async def get_order_by_id(self, order_id: str) -> Any:
        return await self._request("GET", f"/orders/{order_id}")

    # Catalog

    async def search_books(self, query: str) -> Any:
        return await self._request("GET", "/books", params={"search": query})

    async def books_by_category(self, slug: str) -> Any:
        return await self._request("GET", "/books", params={"category": slug})

    async def books_by_author(self, name: str) -> Any:
        return await self._request("GET", "/books", params={"author": name})

    async def featured(self) -> Any:
        return await self._request("GET", "/featured-books")

    async def trending(self, limit: int = 3) -> Any:
        return await self._request("GET", "/chat/trending", params={"limit": limit})

    # Support

    async def faqs(self) -> Any:
        return await self._request("GET", "/chatbot/faqs")

    async def active_coupons(self) -> Any:
        return await self._request("GET", "/active-coupons")

    async def chat(self, message: str, history: List[Dict[str, str]]) -> Any:
        return await self._request(
            "POST", "/ai/chat", payload={"message": message, "history": history}
        )

    async def contact(self, payload: Mapping[str, Any]) -> Any:
        return await self._request("POST", "/chatbot/contact", payload=payload)

    async def feedback(self, rating: int, notes: Optional[str] = None) -> Any:
        return await self._request(
            "POST", "/chatbot/feedback", payload={"rating": rating, "notes": notes}
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method, path, params=params, json=payload
            )
        except httpx.RequestError as exc:
            raise StorefrontError("NETWORK_FAILURE", str(exc)) from exc
        if response.status_code >= 400:
            logger.debug("%s %s -> HTTP %s", method, path, response.status_code)
            raise StorefrontError(
                "UNAUTHORIZED" if response.status_code in (401, 403) else "HTTP_ERROR",
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise StorefrontError(
                "INVALID_JSON",
                f"{method} {path} returned a non-JSON body",
                status_code=response.status_code,
            ) from exc
