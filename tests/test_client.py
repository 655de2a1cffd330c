import httpx
import pytest

from storefront_chatbot.client import StorefrontClient, StorefrontError


def _client(handler, **kwargs):
    return StorefrontClient(
        "http://shop.test/api", transport=httpx.MockTransport(handler), **kwargs
    )


@pytest.mark.asyncio
async def test_order_listing_request():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": [], "meta": {"last_page": 1}})

    client = _client(handler, token="secret")
    payload = await client.get_user_orders(page=2)
    await client.aclose()

    assert payload == {"data": [], "meta": {"last_page": 1}}
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == "/api/orders"
    assert request.url.params["page"] == "2"
    assert request.headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_catalog_and_chat_routes():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, dict(request.url.params)))
        return httpx.Response(200, json={"reply": "hi"})

    client = _client(handler)
    await client.books_by_author("Tô Hoài")
    await client.trending(5)
    await client.chat("hello", [{"role": "user", "content": "hey"}])
    await client.aclose()

    assert seen == [
        ("GET", "/api/books", {"author": "Tô Hoài"}),
        ("GET", "/api/chat/trending", {"limit": "5"}),
        ("POST", "/api/ai/chat", {}),
    ]


@pytest.mark.asyncio
async def test_http_errors_are_mapped():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/orders"):
            return httpx.Response(401, json={"message": "Unauthenticated."})
        return httpx.Response(404)

    client = _client(handler)
    with pytest.raises(StorefrontError) as unauthorized:
        await client.get_user_orders()
    with pytest.raises(StorefrontError) as missing:
        await client.get_order_by_id("9")
    await client.aclose()

    assert unauthorized.value.code == "UNAUTHORIZED"
    assert unauthorized.value.status_code == 401
    assert missing.value.code == "HTTP_ERROR"
    assert missing.value.status_code == 404


@pytest.mark.asyncio
async def test_network_failure_is_mapped():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    with pytest.raises(StorefrontError) as failure:
        await client.featured()
    await client.aclose()
    assert failure.value.code == "NETWORK_FAILURE"


@pytest.mark.asyncio
async def test_non_json_body_is_an_error():
    client = _client(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(StorefrontError) as failure:
        await client.faqs()
    await client.aclose()
    assert failure.value.code == "INVALID_JSON"
