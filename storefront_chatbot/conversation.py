"""
Conversation controller for the storefront chat assistant.

A controller owns one conversation: its append-only message log, the
mini-game slot and any pending reading reminders. The UI layer talks to it
through `send`, `select`, `reset` and the form submission methods, and reads
`messages` to render.

Every handler failure is caught at the dispatch boundary and turned into a
single apology message, so nothing raised by a collaborator reaches the UI.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
)

from openai import OpenAIError

from .client import StorefrontError
from .config import Settings, get_settings
from .intents import Intent, classify, extract_order_code, extract_order_id
from .llm import AIFallback
from .models import ContactForm, FeedbackForm, Message, MiniGameState
from .normalize import normalize_book, normalize_order, sort_recent
from .orders import OrderHistoryUnavailable, OrderResolver
from .payloads import dig, find_array

logger = logging.getLogger(__name__)

Handler = Callable[[str], Awaitable[None]]
Sleep = Callable[[float], Awaitable[Any]]

GREETING = (
    "Hi! I'm the Secret Book assistant 📚. "
    "Pick an option below or tell me what you need:"
)
APOLOGY = "Something went wrong on my side. Please try again."
LOGIN_PROMPT = (
    "I can't check your order history right now. "
    "Please log in and open Profile › Orders."
)

# Quick-reply label -> (intent, text handed to the handler)
QUICK_REPLIES: Dict[str, Tuple[Intent, str]] = {
    "Buy books": (Intent.BUY, ""),
    "Suggest by genre": (Intent.SUGGEST_CATEGORY, ""),
    "Suggest by author": (Intent.SUGGEST_AUTHOR, ""),
    "Recent orders": (Intent.ORDERS_LAST, ""),
    "FAQ": (Intent.FAQ, ""),
    "Promotions": (Intent.PROMO, ""),
    "Trending": (Intent.TRENDING, ""),
    "Mini game": (Intent.MINIGAME, ""),
    "Remind me to read in 30 minutes": (Intent.REMIND, "remind me in 30 minutes"),
}

CATEGORY_SLUGS: Dict[str, str] = {
    "tiểu thuyết": "tieu-thuyet",
    "novel": "tieu-thuyet",
    "self-help": "self-help",
    "trinh thám": "trinh-tham",
    "detective": "trinh-tham",
    "thiếu nhi": "thieu-nhi",
    "children": "thieu-nhi",
    "kinh doanh": "kinh-doanh",
    "business": "kinh-doanh",
    "khoa học": "khoa-hoc",
    "science": "khoa-hoc",
}

MOODS: List[Tuple[re.Pattern, str, str]] = [
    (re.compile(r"buồn|cô đơn|\bsad\b|lonely"), "self-help", "to lift your spirits"),
    (re.compile(r"động lực|motivat"), "self-help", "to get your drive back"),
    (re.compile(r"nhẹ nhàng|thư giãn|relax"), "tieu-thuyet", "that are light and easy"),
]

MINIGAME_POOL: List[Tuple[str, str]] = [
    ("“No man ever steps in the same river twice.”", "philosophy"),
    ("“It is only with the heart that one can see rightly.”", "the little prince"),
    ("“Love as if you had never been hurt.”", "self-help"),
]
MINIGAME_REWARD = "MINI5"
SKIP_WORDS = ("bỏ qua", "skip")

_BUY_WORDS = re.compile(
    r"\b(mua|đặt sách|đặt mua|đặt hàng|đặt|quyển|cuốn|sách|buy|purchase|books?)\b",
    re.IGNORECASE,
)
_AUTHOR_WORDS = re.compile(
    r"(tác giả|sách của|của|books? by|author)", re.IGNORECASE
)
_COMBO_WORDS = re.compile(
    r"(combo|mua kèm|bundle|bought together)", re.IGNORECASE
)
_TRENDING_LIMIT = re.compile(r"(\d+)\s*(quyển|cuốn|sách|books?)", re.IGNORECASE)
_REMIND_DELAY = re.compile(
    r"(\d+)\s*(phút|giờ|tiếng|minutes?|mins?|hours?|h)\b", re.IGNORECASE
)


class ConversationController:
    """Routes user utterances to handlers and keeps the conversation log."""

    def __init__(
        self,
        client: Any,
        ai: Optional[AIFallback] = None,
        *,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._resolver = OrderResolver(client, max_pages=self._settings.max_order_pages)
        self._ai = ai or AIFallback(client, self._settings)
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._messages: List[Message] = []
        self._game: Optional[MiniGameState] = None
        self._faqs: List[Dict[str, str]] = []
        self._reminders: Set[asyncio.Task] = set()
        self._handlers: Dict[Intent, Handler] = {
            Intent.TRACK: self._handle_track,
            Intent.ORDERS_LAST: self._handle_recent_orders,
            Intent.TRENDING: self._handle_trending,
            Intent.COMBO: self._handle_combo,
            Intent.BUY: self._handle_buy,
            Intent.MOOD: self._handle_mood,
            Intent.SUGGEST_AUTHOR: self._handle_author,
            Intent.SUGGEST_CATEGORY: self._handle_category,
            Intent.FAQ: self._handle_faq,
            Intent.CONTACT: self._handle_contact,
            Intent.FEEDBACK: self._handle_feedback,
            Intent.MINIGAME: self._start_minigame,
            Intent.PROMO: self._handle_promo,
            Intent.REMIND: self._handle_remind,
            Intent.AI: self._handle_ai,
        }
        self.reset()

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def game(self) -> Optional[MiniGameState]:
        return self._game

    @property
    def pending_reminders(self) -> int:
        return len(self._reminders)

    # Log

    def _push(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def _say(self, text: str) -> Message:
        return self._push(Message(role="assistant", kind="text", payload={"text": text}))

    def _you(self, text: str) -> Message:
        return self._push(Message(role="user", kind="text", payload={"text": text}))

    def _quick_replies(self) -> Message:
        return self._push(
            Message(
                role="assistant",
                kind="quick-replies",
                payload={"options": list(QUICK_REPLIES)},
            )
        )

    def _since(self, start: int) -> List[Message]:
        return list(self._messages[start:])

    def reset(self) -> None:
        """Restart the conversation from the greeting and the quick-reply menu."""
        self._messages = []
        self._game = None
        self._say(GREETING)
        self._quick_replies()

    # Entry points

    async def send(self, utterance: str) -> List[Message]:
        """
        Handle one user utterance.

        The utterance is always logged. While a mini-game is running the
        utterance is taken as a guess; otherwise it is classified and routed
        to the matching handler.

        Returns:
            The messages appended during this call, the user's included.
        """
        text = (utterance or "").strip()
        if not text:
            return []
        start = len(self._messages)
        self._you(text)
        if self._game is not None:
            self._play(text)
        else:
            await self._dispatch(classify(text), text)
        return self._since(start)

    async def select(self, option: str) -> List[Message]:
        """Handle a quick-reply menu choice without classifying it."""
        entry = QUICK_REPLIES.get(option)
        if entry is None:
            return await self.send(option)
        intent, text = entry
        start = len(self._messages)
        self._you(option)
        self._game = None
        await self._dispatch(intent, text)
        return self._since(start)

    async def submit_contact(self, form: ContactForm) -> List[Message]:
        start = len(self._messages)
        try:
            await self._client.contact(form.model_dump(exclude_none=True))
        except StorefrontError as exc:
            logger.warning("Contact submission failed: %s", exc)
            self._say("I couldn't send your details right now. Please try again later.")
        else:
            self._say("Thank you! Our support team will contact you soon.")
        return self._since(start)

    async def submit_feedback(self, form: FeedbackForm) -> List[Message]:
        start = len(self._messages)
        try:
            await self._client.feedback(form.rating, form.notes)
        except StorefrontError as exc:
            logger.warning("Feedback submission failed: %s", exc)
            self._say("I couldn't record your feedback right now. Please try again later.")
        else:
            self._say("Thanks for your feedback 💛")
        return self._since(start)

    async def close(self) -> None:
        """Cancel pending reminders; the controller should not be used afterwards."""
        tasks = list(self._reminders)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._reminders.clear()

    async def _dispatch(self, intent: Intent, text: str) -> None:
        handler = self._handlers.get(intent, self._handle_ai)
        logger.debug("Dispatching intent %s", intent.value)
        try:
            await handler(text)
        except Exception:
            logger.exception("Handler for intent %s failed", intent.value)
            self._say(APOLOGY)

    async def _optional(self, call: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """Call a catalog collaborator whose failure just means 'no data'."""
        try:
            return await call(*args)
        except StorefrontError as exc:
            logger.warning("%s failed: %s", getattr(call, "__name__", call), exc)
            return None

    # Orders

    def _push_orders(self, orders: List[Any]) -> None:
        self._push(
            Message(
                role="assistant",
                kind="order-list",
                payload={"orders": [order.model_dump(mode="json") for order in orders]},
            )
        )

    async def _handle_track(self, text: str) -> None:
        code = extract_order_code(text)
        if code:
            lookup = await self._resolver.find_order_by_code(code)
            if lookup.found:
                self._push_orders([lookup.order])
            elif lookup.outcome == "unavailable":
                self._say(LOGIN_PROMPT)
            else:
                self._say("I couldn't find an order with this code in your recent history.")
            return

        order_id = extract_order_id(text)
        if order_id:
            lookup = await self._resolver.find_order_by_id(order_id)
            if lookup.found:
                self._push_orders([lookup.order])
            elif lookup.outcome == "unavailable":
                self._say(LOGIN_PROMPT)
            else:
                self._say("I couldn't find an order with the id you gave.")
            return

        self._say('Please give me an order code like "ORD-XXXXXX" or a numeric order id.')

    async def _handle_recent_orders(self, text: str) -> None:
        limit = self._settings.recent_orders_limit
        self._say(f"Let me look at your {limit} most recent orders…")
        try:
            records = await self._resolver.recent_orders(limit)
        except OrderHistoryUnavailable:
            self._say(LOGIN_PROMPT)
            return
        if not records:
            self._say(
                "Looks like you have no orders yet. "
                "Profile › Orders is where your first one will show up!"
            )
            return
        self._push_orders([normalize_order(record) for record in records])

    # Catalog

    def _books(self, payload: Any, limit: int) -> List[Dict[str, Any]]:
        records = find_array(payload) or []
        return [
            normalize_book(record, self._settings.api_base_url).model_dump(mode="json")
            for record in records[:limit]
        ]

    def _push_books(self, title: str, books: List[Dict[str, Any]]) -> None:
        self._push(
            Message(
                role="assistant",
                kind="book-list",
                payload={"title": title, "books": books},
            )
        )

    async def _newest_books(self, limit: int) -> List[Dict[str, Any]]:
        payload = await self._optional(self._client.search_books, "")
        records = sort_recent(find_array(payload) or [])
        books = self._books(records, limit)
        if not books:
            books = self._books(await self._optional(self._client.featured), limit)
        return books

    async def _handle_buy(self, text: str) -> None:
        query = re.sub(r"\s+", " ", _BUY_WORDS.sub("", text)).strip(" ?!.,")
        if query:
            self._say("Looking for the book you want…")
            books = self._books(await self._client.search_books(query), 3)
            if books:
                self._push_books(f"Results for “{query}”", books)
                self._say("Tap a book to see its details and order it.")
                return
            self._say("I couldn't find that title, here are our newest books instead.")
        else:
            self._say("Fetching our newest books…")
        books = await self._newest_books(10)
        if not books:
            self._say("There are no new books to show yet.")
            return
        self._push_books("Newest books", books)

    async def _handle_category(self, text: str) -> None:
        lowered = text.lower()
        found = next((name for name in CATEGORY_SLUGS if name in lowered), None)
        if found is None:
            books = self._books(await self._optional(self._client.featured), 5)
            if not books:
                self._say("Which genre do you like? Novels, detective, self-help, science…")
                return
            self._push_books("Today's picks", books)
            return
        self._say(f"Here are some {found} titles worth reading:")
        books = self._books(await self._client.books_by_category(CATEGORY_SLUGS[found]), 5)
        if not books:
            self._say("No books in this genre yet. Try another one from the menu.")
            return
        self._push_books(found.capitalize(), books)

    async def _handle_author(self, text: str) -> None:
        author = re.sub(r"\s+", " ", _AUTHOR_WORDS.sub("", text)).strip(" ?!.,:")
        if not author:
            self._say("Which author are you looking for?")
            return
        self._say(f"Searching for books by {author}…")
        books = self._books(await self._client.books_by_author(author), 5)
        if not books:
            self._say("I found no books by that author. Try another name.")
            return
        self._push_books(f"Books by {author}", books)

    async def _handle_combo(self, text: str) -> None:
        query = re.sub(r"\s+", " ", _COMBO_WORDS.sub("", text)).strip(" ?!.,")
        self._say("Looking for books that go well together…")
        records = find_array(await self._client.search_books(query)) or []
        if not records:
            self._say("Tell me a book title and I'll suggest what goes with it.")
            return
        base = normalize_book(records[0], self._settings.api_base_url)
        if not base.author_name:
            self._say("No fitting combo for now. Try another book.")
            return
        same_author = find_array(await self._client.books_by_author(base.author_name)) or []
        others = [
            record
            for record in same_author
            if base.id is None or normalize_book(record).id != base.id
        ]
        books = self._books(others, 4)
        if not books:
            self._say("No fitting combo for now. Try another book.")
            return
        self._push_books(f"Often bought with “{base.title}”", books)

    async def _handle_mood(self, text: str) -> None:
        lowered = text.lower()
        match = next((mood for mood in MOODS if mood[0].search(lowered)), None)
        if match is None:
            self._say("Tell me how you feel or what you'd like to read and I'll narrow it down.")
            return
        _, slug, note = match
        self._say(f"Some {slug} books {note}:")
        books = self._books(await self._client.books_by_category(slug), 5)
        if not books:
            self._say("Nothing fitting yet. Try browsing by genre from the menu.")
            return
        self._push_books(slug.upper(), books)

    async def _handle_trending(self, text: str) -> None:
        match = _TRENDING_LIMIT.search(text)
        limit = max(1, int(match.group(1))) if match else 3
        try:
            payload = await self._client.trending(limit)
        except StorefrontError as exc:
            logger.warning("Trending unavailable, falling back to featured: %s", exc)
            books = self._books(await self._optional(self._client.featured), limit)
            if not books:
                self._say("There is no bestseller list yet.")
                return
            self._push_books("Bestsellers / hot right now", books)
            return
        books = self._books(payload, limit)
        if not books:
            self._say("There is no trending data yet.")
            return
        self._push_books(f"Top {len(books)} books by revenue", books)

    # Support

    @staticmethod
    def _faq_entry(record: Mapping[str, Any]) -> Dict[str, str]:
        question = record.get("q") or record.get("question") or record.get("title") or ""
        answer = record.get("a") or record.get("answer") or ""
        return {"question": str(question), "answer": str(answer)}

    async def _handle_faq(self, text: str) -> None:
        if not self._faqs:
            payload = await self._optional(self._client.faqs)
            records = dig(payload, ("faqs",))
            if not isinstance(records, list):
                records = find_array(payload) or []
            self._faqs = [
                self._faq_entry(record) for record in records if isinstance(record, Mapping)
            ]
        if not self._faqs:
            self._say("The FAQ has no entries yet.")
            return
        lowered = text.lower()
        hit = next(
            (
                faq
                for faq in self._faqs
                if faq["question"] and faq["answer"] and faq["question"].lower() in lowered
            ),
            None,
        )
        if hit is not None:
            self._say(hit["answer"])
            return
        self._push(
            Message(role="assistant", kind="faq-list", payload={"faqs": list(self._faqs)})
        )

    async def _handle_promo(self, text: str) -> None:
        self._say("Let me check today's promotions…")
        coupons = find_array(await self._optional(self._client.active_coupons)) or []
        lines = [
            f"• {coupon.get('code')}: {coupon.get('description') or ''}".rstrip()
            for coupon in coupons[:5]
            if isinstance(coupon, Mapping) and coupon.get("code")
        ]
        if not lines:
            self._say("There are no public codes right now. Keep an eye on our banners!")
            return
        self._say("Active codes:\n" + "\n".join(lines))

    async def _handle_contact(self, text: str) -> None:
        self._push(
            Message(
                role="assistant",
                kind="form",
                payload={
                    "form": "contact",
                    "text": "Leave your details and our support team will get back to you.",
                },
            )
        )

    async def _handle_feedback(self, text: str) -> None:
        self._push(
            Message(
                role="assistant",
                kind="form",
                payload={"form": "feedback", "text": "How was your experience with us?"},
            )
        )

    # Mini game

    async def _start_minigame(self, text: str) -> None:
        quote, answer = self._rng.choice(MINIGAME_POOL)
        self._game = MiniGameState(step=1, quote=quote, answer=answer.lower())
        self._say(
            "Mini game 🎮: guess the book (or its genre) from this quote:\n"
            f"{quote}\n→ What's your answer?"
        )

    def _play(self, guess: str) -> None:
        game = self._game
        if game is None:
            return
        lowered = guess.lower()
        if game.step == 1:
            if game.answer in lowered:
                self._say(
                    f"Correct! 🎉 Here is a 5% discount code: {MINIGAME_REWARD} "
                    "(while it lasts)."
                )
                self._game = None
            else:
                self._say('Not quite. Have another go (type "skip" to stop).')
                self._game = game.model_copy(update={"step": 2})
            return

        if any(word in lowered for word in SKIP_WORDS):
            self._say("Okay, stopping the mini game.")
        elif game.answer in lowered:
            self._say("Spot on! 🎉")
        else:
            self._say(f"The answer was: {game.answer.upper()}. Play again?")
        self._game = None

    # Reminders

    async def _handle_remind(self, text: str) -> None:
        match = _REMIND_DELAY.search(text)
        minutes = self._settings.default_remind_minutes
        if match:
            amount = int(match.group(1))
            unit = match.group(2).lower()
            minutes = amount * 60 if unit.startswith(("giờ", "tiếng", "h")) else amount
        minutes = max(1, minutes)
        self._say(f"Reading reminder set for {minutes} minutes from now. I'll ping you here.")
        task = asyncio.get_running_loop().create_task(self._remind_later(minutes))
        self._reminders.add(task)
        task.add_done_callback(self._reminders.discard)

    async def _remind_later(self, minutes: int) -> None:
        await self._sleep(minutes * 60)
        self._say(f"⏰ Time to read! Your {minutes} minutes are up.")

    # Fallback

    def _history(self, exclude_last: int = 1) -> List[Dict[str, str]]:
        window = self._settings.history_window
        if window <= 0:
            return []
        earlier = self._messages[: len(self._messages) - exclude_last]
        texts = [m for m in earlier if m.kind == "text"]
        return [{"role": m.role, "content": m.text} for m in texts[-window:]]

    async def _handle_ai(self, text: str) -> None:
        history = self._history()
        try:
            reply = await self._ai.reply(text, history)
        except (StorefrontError, OpenAIError) as exc:
            logger.warning("AI fallback unavailable: %s", exc)
            self._say("The AI server is busy. Please pick one of the quick options below.")
        else:
            self._say(reply or "I'm not sure what you mean. Could you be more specific?")
        self._quick_replies()
