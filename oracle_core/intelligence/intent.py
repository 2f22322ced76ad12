"""意图分类（与服务端路由使用相同的信号和优先级）。

客户端判断正确时服务端可以跳过自己的检测；判断错误时由服务端覆盖。
"""

from typing import Dict, List

from oracle_core.domain.models import Intent


INTENT_SIGNALS: Dict[str, List[str]] = {
    "vision": [
        "look at", "see this", "what is this", "identify", "can you see",
        "in the image", "in the photo", "this item", "what do you see",
        "scan this", "check this out",
    ],
    "deep_analysis": [
        "break down", "analyze", "explain why", "valuation factors",
        "deep dive", "tell me everything", "comprehensive", "detailed",
        "compare", "versus", "pros and cons", "full analysis",
    ],
    "market_query": [
        "trending", "market", "what's hot", "price trend", "going up",
        "going down", "selling for", "recent sales", "comps", "ebay price",
        "what are people paying", "current price", "market value",
    ],
    "strategy": [
        "should i sell", "should i hold", "should i buy", "flip",
        "investment", "portfolio", "best strategy", "when to sell",
        "where to sell", "listing strategy", "pricing strategy",
        "what should i do with", "my collection",
    ],
    "creative": [
        "tell me a joke", "what do you think about", "your opinion",
        "favorite", "fun fact", "story", "interesting", "what's your name",
        "who are you", "personality",
    ],
    "quick_answer": [
        "how much", "what's it worth", "worth anything", "price check",
        "quick question", "is this worth", "value of", "how many",
    ],
    "casual": [
        "hey", "hi", "hello", "what's up", "sup", "yo", "good morning",
        "how are you", "what's good", "howdy", "how's it going",
    ],
}

# 越具体的意图越先检查
INTENT_PRIORITY: List[str] = [
    "vision", "deep_analysis", "market_query", "strategy",
    "creative", "quick_answer", "casual",
]

LONG_MESSAGE_CHARS = 100
SHORT_QUESTION_CHARS = 50


def detect_intent(message: str) -> Intent:
    lower = (message or "").lower().strip()

    for intent in INTENT_PRIORITY:
        for signal in INTENT_SIGNALS[intent]:
            if signal in lower:
                return intent

    if len(lower) > LONG_MESSAGE_CHARS:
        return "deep_analysis"
    if "?" in lower and len(lower) < SHORT_QUESTION_CHARS:
        return "quick_answer"
    return "casual"
