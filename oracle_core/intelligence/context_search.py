"""本地上下文检索。

用新消息中的关键词给缓存的助手回复打分，返回最相关的几条片段，
让服务端可以缩小提示词。这是关键词命中计数，不是语义检索。
"""

import re
from typing import List, Sequence

from oracle_core.domain.models import ChatMessage


STOPWORDS = frozenset({
    "the", "and", "for", "are", "but", "not", "you", "all", "can",
    "had", "her", "was", "one", "our", "out", "has", "have", "this",
    "that", "with", "what", "when", "where", "how", "who", "will",
    "about", "would", "there", "their", "from", "been", "some",
    "could", "them", "than", "other", "into", "just", "also",
})

MIN_KEYWORD_CHARS = 3
MIN_CANDIDATE_CHARS = 20
MAX_SNIPPET_CHARS = 200

_NON_WORD = re.compile(r"[^a-z0-9\s]")


def extract_keywords(text: str) -> List[str]:
    """小写、去标点、去停用词与短词，按首次出现顺序去重。"""

    words = _NON_WORD.sub("", (text or "").lower()).split()
    keywords: List[str] = []
    for w in words:
        if len(w) >= MIN_KEYWORD_CHARS and w not in STOPWORDS and w not in keywords:
            keywords.append(w)
    return keywords


def _truncate(content: str) -> str:
    if len(content) > MAX_SNIPPET_CHARS:
        return content[: MAX_SNIPPET_CHARS - 3] + "..."
    return content


def search_local_context(
    new_message: str,
    cached_messages: Sequence[ChatMessage],
    max_results: int = 3,
) -> List[str]:
    if not cached_messages or max_results <= 0:
        return []

    keywords = extract_keywords(new_message)
    if not keywords:
        return []

    scored = []
    for m in cached_messages:
        if m.role != "assistant" or len(m.content) <= MIN_CANDIDATE_CHARS:
            continue
        content_lower = m.content.lower()
        hits = sum(1 for k in keywords if k in content_lower)
        if hits > 0:
            scored.append((hits, m.content))

    # sorted 是稳定排序，同分时保持原有先后顺序
    scored = sorted(scored, key=lambda s: s[0], reverse=True)[:max_results]
    return [_truncate(content) for _, content in scored]
