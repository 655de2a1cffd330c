import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from storefront_chatbot.app import CONVERSATIONS, app, get_settings, get_storefront


@pytest.fixture
def api(storefront, settings):
    app.dependency_overrides[get_storefront] = lambda: storefront
    app.dependency_overrides[get_settings] = lambda: settings
    yield AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    app.dependency_overrides.clear()
    CONVERSATIONS.clear()


@pytest.mark.asyncio
async def test_conversation_flow(api, storefront):
    storefront.pages = [
        [{"id": 1, "code": "ORD-A1"}],
        [{"id": 2, "code": "ORD-B2", "status": "completed", "total_amount": 199000}],
    ]
    async with api as client:
        # Create a new conversation
        create_resp = await client.post("/conversations")
        assert create_resp.status_code == 200
        body = create_resp.json()
        conv_id = body["conversation_id"]
        assert uuid.UUID(conv_id)  # valid UUID
        assert [m["kind"] for m in body["messages"]] == ["text", "quick-replies"]

        # Track an order found on the second page
        resp1 = await client.post(
            f"/conversations/{conv_id}/messages",
            json={"content": "Where is my order ORD-B2?"},
        )
        assert resp1.status_code == 200
        added = resp1.json()["messages"]
        assert added[0] == {
            "role": "user",
            "kind": "text",
            "payload": {"text": "Where is my order ORD-B2?"},
        }
        order = added[1]["payload"]["orders"][0]
        assert order["code"] == "ORD-B2"
        assert order["status_label"] == "Completed"
        assert order["total"] == 199000

        # The full log keeps everything in order
        get_resp = await client.get(f"/conversations/{conv_id}/messages")
        assert len(get_resp.json()["messages"]) == 4

        # Reset brings it back to the greeting
        reset_resp = await client.post(f"/conversations/{conv_id}/reset")
        assert len(reset_resp.json()["messages"]) == 2


@pytest.mark.asyncio
async def test_quick_reply_and_forms(api, storefront):
    async with api as client:
        conv_id = (await client.post("/conversations")).json()["conversation_id"]

        resp = await client.post(
            f"/conversations/{conv_id}/quick-replies", json={"option": "Mini game"}
        )
        assert resp.status_code == 200
        assert "Mini game" in resp.json()["messages"][1]["payload"]["text"]

        resp = await client.post(
            f"/conversations/{conv_id}/feedback", json={"rating": 4, "notes": "Nice"}
        )
        assert resp.json()["messages"][0]["payload"]["text"].startswith("Thanks")
        assert ("feedback", (4, "Nice")) in storefront.calls

        resp = await client.post(f"/conversations/{conv_id}/feedback", json={"rating": 9})
        assert resp.status_code == 422


@pytest.mark.asyncio
async def test_unknown_and_deleted_conversations(api):
    async with api as client:
        assert (await client.get("/conversations/nope/messages")).status_code == 404
        assert (
            await client.post("/conversations/nope/messages", json={"content": "hi"})
        ).status_code == 404

        conv_id = (await client.post("/conversations")).json()["conversation_id"]
        assert (await client.delete(f"/conversations/{conv_id}")).status_code == 204
        assert conv_id not in CONVERSATIONS
        assert (await client.delete(f"/conversations/{conv_id}")).status_code == 404
