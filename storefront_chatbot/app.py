"""
FastAPI application exposing the chat assistant to the storefront UI.

Endpoints:
  - POST /conversations: start a conversation (greeting and quick replies).
  - GET /conversations/{conversation_id}/messages: the ordered message log.
  - POST /conversations/{conversation_id}/messages: send a user utterance.
  - POST /conversations/{conversation_id}/quick-replies: pick a menu option.
  - POST /conversations/{conversation_id}/reset: restart the conversation.
  - POST /conversations/{conversation_id}/contact and /feedback: submit the
    forms the assistant offered.
  - DELETE /conversations/{conversation_id}: close it and cancel reminders.

Conversation state is stored in memory only and will be lost when the process
terminates.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Path
from pydantic import BaseModel, Field

from .client import StorefrontClient
from .config import Settings, get_settings
from .conversation import ConversationController
from .models import ContactForm, FeedbackForm, Message

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# In-memory conversation store
CONVERSATIONS: Dict[str, ConversationController] = {}

_storefront: Optional[StorefrontClient] = None


def get_storefront(settings: Settings = Depends(get_settings)) -> StorefrontClient:
    """Return the shared storefront client, creating it on first use."""
    global _storefront
    if _storefront is None:
        _storefront = StorefrontClient(
            settings.api_base_url,
            token=settings.api_token,
            timeout=settings.http_timeout,
        )
    return _storefront


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    yield
    global _storefront
    for controller in CONVERSATIONS.values():
        await controller.close()
    CONVERSATIONS.clear()
    if _storefront is not None:
        await _storefront.aclose()
        _storefront = None
    logger.info("Chat assistant shut down")


app = FastAPI(title="Storefront Chat Assistant", lifespan=lifespan)


class CreateConversationResponse(BaseModel):
    conversation_id: str = Field(..., description="Unique conversation identifier")
    messages: List[Message] = Field(..., description="Initial greeting messages.")


class UserMessageRequest(BaseModel):
    content: str = Field(..., max_length=4000, description="The user's message content")


class QuickReplyRequest(BaseModel):
    option: str = Field(..., description="Label of the chosen quick-reply option")


class MessagesResponse(BaseModel):
    messages: List[Message] = Field(
        ..., description="Messages in conversation order."
    )


def _conversation(conversation_id: str) -> ConversationController:
    controller = CONVERSATIONS.get(conversation_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return controller


@app.post("/conversations", response_model=CreateConversationResponse)
async def create_conversation(
    storefront: StorefrontClient = Depends(get_storefront),
    settings: Settings = Depends(get_settings),
) -> CreateConversationResponse:
    """Start a new conversation and return its ID."""
    conv_id = str(uuid.uuid4())
    controller = ConversationController(storefront, settings=settings)
    CONVERSATIONS[conv_id] = controller
    logger.info("Conversation %s started", conv_id)
    return CreateConversationResponse(
        conversation_id=conv_id, messages=list(controller.messages)
    )


@app.get(
    "/conversations/{conversation_id}/messages",
    response_model=MessagesResponse,
)
async def get_messages(
    conversation_id: str = Path(..., description="Conversation ID")
) -> MessagesResponse:
    """Retrieve the message log of a conversation."""
    return MessagesResponse(messages=list(_conversation(conversation_id).messages))


@app.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessagesResponse,
)
async def post_message(
    *,
    conversation_id: str = Path(..., description="Conversation ID"),
    request: UserMessageRequest,
) -> MessagesResponse:
    """Send a user message and return what it appended to the log."""
    controller = _conversation(conversation_id)
    return MessagesResponse(messages=await controller.send(request.content))


@app.post(
    "/conversations/{conversation_id}/quick-replies",
    response_model=MessagesResponse,
)
async def post_quick_reply(
    *,
    conversation_id: str = Path(..., description="Conversation ID"),
    request: QuickReplyRequest,
) -> MessagesResponse:
    """Run the handler behind a quick-reply option."""
    controller = _conversation(conversation_id)
    return MessagesResponse(messages=await controller.select(request.option))


@app.post(
    "/conversations/{conversation_id}/reset",
    response_model=MessagesResponse,
)
async def reset_conversation(
    conversation_id: str = Path(..., description="Conversation ID")
) -> MessagesResponse:
    controller = _conversation(conversation_id)
    controller.reset()
    return MessagesResponse(messages=list(controller.messages))


@app.post(
    "/conversations/{conversation_id}/contact",
    response_model=MessagesResponse,
)
async def submit_contact(
    *,
    conversation_id: str = Path(..., description="Conversation ID"),
    form: ContactForm,
) -> MessagesResponse:
    controller = _conversation(conversation_id)
    return MessagesResponse(messages=await controller.submit_contact(form))


@app.post(
    "/conversations/{conversation_id}/feedback",
    response_model=MessagesResponse,
)
async def submit_feedback(
    *,
    conversation_id: str = Path(..., description="Conversation ID"),
    form: FeedbackForm,
) -> MessagesResponse:
    controller = _conversation(conversation_id)
    return MessagesResponse(messages=await controller.submit_feedback(form))


@app.delete("/conversations/{conversation_id}", status_code=204)
async def delete_conversation(
    conversation_id: str = Path(..., description="Conversation ID")
) -> None:
    """Close a conversation, cancelling its pending reminders."""
    controller = CONVERSATIONS.pop(conversation_id, None)
    if controller is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    await controller.close()
