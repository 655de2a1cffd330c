"""
Rule-based intent classification for chat utterances.

Intents are plain data: each one names a handler in the conversation
controller. Classification walks the ordered `RULES` table and the first
pattern that matches wins, so more specific rules sit above broader ones.
Patterns cover both Vietnamese (the storefront's locale) and English.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import List, Optional, Tuple


class Intent(str, Enum):
    TRACK = "track"
    ORDERS_LAST = "orders.last"
    TRENDING = "trending"
    COMBO = "combo"
    BUY = "buy"
    MOOD = "mood"
    SUGGEST_AUTHOR = "suggest.author"
    SUGGEST_CATEGORY = "suggest.category"
    FAQ = "faq"
    CONTACT = "contact"
    FEEDBACK = "feedback"
    MINIGAME = "minigame"
    PROMO = "promo"
    REMIND = "remind"
    AI = "ai"


# "ORD-AB12", "ord_77", "ORD1234", "ord 1234". A bare "ord" prefix without a
# separator needs a digit so that words like "order" do not qualify.
ORDER_CODE_PATTERN = re.compile(
    r"\bord(?:[-_][a-z0-9]+|\s?[a-z]*\d[a-z0-9]*)\b", re.IGNORECASE
)
ORDER_ID_PATTERN = re.compile(r"^\d{1,10}$")
_ORDER_ID_MENTION = re.compile(r"(?:order|đơn(?: hàng)?)\s?#\s?(\d{1,10})\b|(?:order)\s(\d{1,10})\b")


def _rule(pattern: str, intent: Intent) -> Tuple[re.Pattern, Intent]:
    return re.compile(pattern), intent


RULES: List[Tuple[re.Pattern, Intent]] = [
    _rule(
        r"theo dõi.*đơn|đơn.*đâu rồi|mã đơn|order\s?#?\d+|\btrack\b|where is my order",
        Intent.TRACK,
    ),
    _rule(
        r"đơn gần|lịch sử|đơn hàng.*(gần|tháng)|mua gì|recent orders?|order history|\bmy orders\b",
        Intent.ORDERS_LAST,
    ),
    _rule(
        r"bestseller|best seller|bán chạy|trending|\bhot\b|doanh thu|top \d+",
        Intent.TRENDING,
    ),
    _rule(r"combo|mua kèm|bundle|bought together", Intent.COMBO),
    _rule(
        r"\bmua\b|đặt sách|đặt mua|đặt hàng|\bbuy\b|purchase", Intent.BUY
    ),
    _rule(
        r"buồn|cô đơn|động lực|nhẹ nhàng|thư giãn|\bsad\b|lonely|motivat|relax",
        Intent.MOOD,
    ),
    _rule(r"tác giả|sách của|\bauthor\b|\bbooks? by\b", Intent.SUGGEST_AUTHOR),
    _rule(
        r"gợi ý|tư vấn|thể loại|self-help|tiểu thuyết|trinh thám|thiếu nhi|"
        r"kinh doanh|khoa học|recommend|genre|category",
        Intent.SUGGEST_CATEGORY,
    ),
    _rule(
        r"\bfaq\b|câu hỏi thường gặp|chính sách|freeship|miễn phí vận chuyển|"
        r"thanh toán|đổi trả|bảo hành|giao hàng|shipping|refund policy|return policy",
        Intent.FAQ,
    ),
    _rule(
        r"liên hệ|để lại số|\bemail\b|đăng ký nhận thông tin|\bcontact\b|hotline",
        Intent.CONTACT,
    ),
    _rule(r"góp ý|đánh giá|hài lòng|tệ quá|hay quá|feedback", Intent.FEEDBACK),
    _rule(
        r"mini ?game|trò chơi|đoán sách|trích dẫn|chơi game|\bquiz\b", Intent.MINIGAME
    ),
    _rule(
        r"khuyến mãi|voucher|mã giảm|\bpromo|giảm giá|coupon|discount", Intent.PROMO
    ),
    _rule(r"nhắc.*đọc|lịch đọc|thói quen đọc|remind", Intent.REMIND),
]


def canonical_code(code: str) -> str:
    """Normalize an order code for exact comparison: "ord_ab 12" -> "ORD-AB-12"."""
    return re.sub(r"[\s_]+", "-", (code or "").strip()).upper()


def extract_order_code(text: Optional[str]) -> Optional[str]:
    """Return the first order-code-shaped token of ``text``, canonicalized."""
    match = ORDER_CODE_PATTERN.search(text or "")
    return canonical_code(match.group(0)) if match else None


def extract_order_id(text: Optional[str]) -> Optional[str]:
    """Return a numeric order id: the whole utterance or an "order #123" mention."""
    stripped = (text or "").strip()
    if ORDER_ID_PATTERN.match(stripped):
        return stripped
    match = _ORDER_ID_MENTION.search(stripped.lower())
    if match:
        return match.group(1) or match.group(2)
    return None


def classify(utterance: Optional[str]) -> Intent:
    """Map an utterance to exactly one intent; `Intent.AI` when nothing matches."""
    raw = utterance or ""
    if ORDER_CODE_PATTERN.search(raw) or ORDER_ID_PATTERN.match(raw.strip()):
        return Intent.TRACK
    text = raw.lower()
    for pattern, intent in RULES:
        if pattern.search(text):
            return intent
    return Intent.AI
