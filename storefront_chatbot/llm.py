"""
Generic-chat fallback for utterances no intent rule recognises.

When an OpenAI key is configured the fallback talks to the chat completions
API directly. Otherwise it relays the message to the storefront's own
``/ai/chat`` endpoint, which fronts the same provider on the server side.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from .config import Settings, get_settings
from .payloads import dig

logger = logging.getLogger(__name__)


def _system_prompt() -> str:
    """Return the system prompt for the storefront assistant."""
    return (
        "You are the assistant of the Secret Book online bookstore. Answer "
        "briefly, helpfully and politely. Never invent order data; when the "
        "user asks about an order or their account, tell them to log in and "
        "open the Orders page."
    )


class AIFallback:
    """Produces a free-form reply for an utterance and its recent history."""

    def __init__(
        self,
        storefront: Any,
        settings: Optional[Settings] = None,
        openai_client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._storefront = storefront
        self._settings = settings or get_settings()
        if openai_client is None and self._settings.openai_api_key:
            openai_client = AsyncOpenAI(api_key=self._settings.openai_api_key)
        self._openai = openai_client

    async def reply(
        self, message: str, history: List[Dict[str, str]]
    ) -> Optional[str]:
        """
        Ask the configured provider for a reply.

        Args:
            message: The user's latest utterance.
            history: Recent ``{"role", "content"}`` pairs, oldest first.

        Returns:
            The reply text, or None when the provider answered with nothing.
        """
        if self._openai is not None:
            text = await self._openai_reply(message, history)
        else:
            payload = await self._storefront.chat(message, history)
            text = dig(payload, ("reply",)) or dig(payload, ("data", "reply"))
        if not isinstance(text, str) or not text.strip():
            logger.debug("AI fallback returned an empty reply")
            return None
        return text.strip()

    async def _openai_reply(
        self, message: str, history: List[Dict[str, str]]
    ) -> Optional[str]:
        openai_messages = [{"role": "system", "content": _system_prompt()}]
        openai_messages += [
            {"role": item["role"], "content": item["content"]} for item in history
        ]
        openai_messages.append({"role": "user", "content": message})
        response = await self._openai.chat.completions.create(
            model=self._settings.openai_model,
            messages=openai_messages,
            temperature=0.5,
            max_tokens=600,
        )
        return response.choices[0].message.content
