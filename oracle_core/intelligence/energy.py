"""情绪能量分类：标点、大写比例与正负词表。"""

from oracle_core.domain.models import Energy


POSITIVE_WORDS = ("awesome", "amazing", "love", "wow", "great", "found", "score", "deal", "nice", "perfect")
NEGATIVE_WORDS = ("wrong", "broken", "stuck", "frustrated", "confused", "hate", "sucks", "terrible")
CURIOUS_PHRASES = ("wondering", "curious", "how does")

CAPS_RATIO_THRESHOLD = 0.5
# 字母数不超过该值时不计算大写比例，避免 "OK" 之类被当成喊叫
MIN_LETTERS_FOR_CAPS = 3
MIN_CHARS_FOR_CAPS = 10
SHORT_MESSAGE_CHARS = 50


def _caps_ratio(message: str) -> float:
    letters = [c for c in message if c.isascii() and c.isalpha()]
    if len(letters) <= MIN_LETTERS_FOR_CAPS:
        return 0.0
    upper = sum(1 for c in letters if c.isupper())
    return upper / len(letters)


def detect_energy(message: str) -> Energy:
    message = message or ""
    lower = message.lower()
    exclamations = message.count("!")
    questions = message.count("?")
    caps_ratio = _caps_ratio(message)

    has_positive = any(w in lower for w in POSITIVE_WORDS)
    has_negative = any(w in lower for w in NEGATIVE_WORDS)

    if exclamations > 1 and has_positive:
        return "excited"
    if caps_ratio > CAPS_RATIO_THRESHOLD and len(message) > MIN_CHARS_FOR_CAPS:
        return "excited" if has_positive else "frustrated"
    if has_negative:
        return "frustrated"
    if len(message) < SHORT_MESSAGE_CHARS and questions > 0:
        return "focused"
    if any(p in lower for p in CURIOUS_PHRASES):
        return "curious"
    return "neutral"
