from types import SimpleNamespace

import pytest

from storefront_chatbot.llm import AIFallback


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _openai(content):
    completions = FakeCompletions(content)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


@pytest.mark.asyncio
async def test_relays_to_storefront_without_openai_key(storefront, settings):
    storefront.reply = "  Xin chào!  "
    fallback = AIFallback(storefront, settings)
    assert await fallback.reply("hi", []) == "Xin chào!"
    assert storefront.calls == [("chat", ("hi", []))]


@pytest.mark.asyncio
async def test_uses_openai_when_configured(storefront, settings):
    client, completions = _openai("Sure, here you go.")
    fallback = AIFallback(storefront, settings, openai_client=client)
    history = [{"role": "assistant", "content": "Hello"}]

    assert await fallback.reply("any tips?", history) == "Sure, here you go."
    sent = completions.kwargs["messages"]
    assert sent[0]["role"] == "system"
    assert sent[1:] == history + [{"role": "user", "content": "any tips?"}]
    assert completions.kwargs["model"] == settings.openai_model
    assert storefront.calls == []


@pytest.mark.asyncio
async def test_empty_reply_is_none(storefront, settings):
    client, _ = _openai(None)
    assert await AIFallback(storefront, settings, openai_client=client).reply("x", []) is None
