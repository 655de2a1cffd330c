"""
Pydantic data models for the storefront chat assistant.

These classes define the conversation log entries, the canonical views the
display normalizer produces from loosely-shaped backend records, the order
lookup result and the mini-game slot.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

MessageKind = Literal[
    "text", "quick-replies", "book-list", "order-list", "faq-list", "form"
]


class Message(BaseModel):
    """A single entry of the append-only conversation log."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"] = Field(
        ..., description="Who produced the message."
    )
    kind: MessageKind = Field(
        default="text", description="How the UI should render the payload."
    )
    payload: Dict[str, Any] = Field(
        default_factory=dict,
        description="Kind-specific content: text, books, orders, faqs, form, options.",
    )

    @property
    def text(self) -> str:
        return str(self.payload.get("text") or "")


class CanonicalOrder(BaseModel):
    """UI-ready view of a raw order record."""

    id: Optional[Union[int, str]] = Field(
        default=None, description="Backend identifier, if the record had one."
    )
    code: str = Field(..., min_length=1, description="Human order code, never empty.")
    status: str = Field(..., description="Raw status value as found in the record.")
    status_label: str = Field(..., description="Human readable order status.")
    payment_status: str = Field(..., description="Raw payment status value.")
    payment_label: str = Field(..., description="Human readable payment status.")
    total: int = Field(default=0, ge=0, description="Order total in minor units.")
    item_count: int = Field(default=0, ge=0, description="Number of items.")
    created_at: Optional[datetime] = Field(
        default=None, description="Creation timestamp when the record carried one."
    )


class CanonicalBook(BaseModel):
    """UI-ready view of a catalog record."""

    id: Optional[Union[int, str]] = None
    title: str = ""
    author_name: Optional[str] = None
    price: Optional[int] = None
    image_url: str = ""
    sold: Optional[int] = None
    revenue: Optional[int] = None


class OrderLookup(BaseModel):
    """Outcome of an order lookup by code or id."""

    outcome: Literal["found", "not_found", "unavailable"] = Field(
        ...,
        description=(
            "'unavailable' means the order history could not be read at all; "
            "'not_found' means the scanned pages held no match."
        ),
    )
    order: Optional[CanonicalOrder] = None
    raw: Optional[Dict[str, Any]] = Field(
        default=None, description="The matching record as returned by the backend."
    )
    pages_scanned: int = Field(default=0, ge=0)

    @property
    def found(self) -> bool:
        return self.outcome == "found"


class MiniGameState(BaseModel):
    """The quote-guessing game slot of a conversation."""

    model_config = ConfigDict(frozen=True)

    step: Literal[1, 2] = 1
    quote: str
    answer: str = Field(..., description="Expected answer, lower-cased.")


class ContactForm(BaseModel):
    """Contact details left through the chat."""

    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=120)
    phone: Optional[str] = Field(default=None, max_length=20)
    message: str = Field(..., min_length=1, max_length=800)


class FeedbackForm(BaseModel):
    """Satisfaction rating left through the chat."""

    rating: int = Field(..., ge=1, le=5)
    notes: Optional[str] = Field(default=None, max_length=500)
