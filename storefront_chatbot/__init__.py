"""Chat assistant for the bookstore storefront."""

from .conversation import ConversationController
from .intents import Intent, classify

__all__ = ["ConversationController", "Intent", "classify"]
