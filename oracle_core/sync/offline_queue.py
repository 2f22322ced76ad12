"""离线发送队列。

只有文本发送路径上的网络层失败会入队（HTTP 错误响应不入队）。
每条记录带一个客户端生成的幂等键，重放时作为 Idempotency-Key 头发送，
服务端据此去重；队列本身只保证至少一次投递。

凭证不随记录保存，重放时重新获取。
"""

import json
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List
from uuid import uuid4

from oracle_core.domain.exceptions import StorageUnavailable
from oracle_core.infrastructure.logging.logger import logger
from oracle_core.infrastructure.storage.session_store import SessionStorage


OFFLINE_QUEUE_KEY = "oracle_offline_queue"


@dataclass
class OfflineQueueItem:
    url: str
    body: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)
    enqueued_at: int = 0
    id: str = field(default_factory=lambda: f"q-{uuid4().hex}")

    @property
    def idempotency_key(self) -> str:
        return self.id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OfflineQueueItem":
        return cls(
            url=data["url"],
            body=dict(data.get("body") or {}),
            headers=dict(data.get("headers") or {}),
            enqueued_at=int(data.get("enqueued_at") or 0),
            id=data["id"],
        )


class OfflineQueue:
    def __init__(self, storage: SessionStorage, clock: Callable[[], float] = time.time):
        self._storage = storage
        self._clock = clock

    def enqueue(self, url: str, body: Dict[str, Any], headers: Dict[str, str] | None = None) -> OfflineQueueItem:
        """追加一条待重放请求。存储不可用时抛 StorageUnavailable。"""

        safe_headers = {
            k: v for k, v in (headers or {}).items() if k.lower() != "authorization"
        }
        item = OfflineQueueItem(
            url=url,
            body=dict(body),
            headers=safe_headers,
            enqueued_at=int(self._clock() * 1000),
        )
        items = self._load()
        items.append(item)
        self._save(items)
        logger.info(
            "Queued message for offline sync",
            extra={"extra": {"queue_id": item.id, "url": url, "queue_size": len(items)}},
        )
        return item

    def items(self) -> List[OfflineQueueItem]:
        try:
            return self._load()
        except StorageUnavailable:
            return []

    def remove(self, item_id: str) -> None:
        items = self._load()
        remaining = [i for i in items if i.id != item_id]
        if len(remaining) != len(items):
            self._save(remaining)

    def __len__(self) -> int:
        return len(self.items())

    def _load(self) -> List[OfflineQueueItem]:
        raw = self._storage.get_item(OFFLINE_QUEUE_KEY)
        if not raw:
            return []
        try:
            data = json.loads(raw)
            return [OfflineQueueItem.from_dict(d) for d in data]
        except (ValueError, KeyError, TypeError) as e:
            raise StorageUnavailable(code="QUEUE_CORRUPT", message=str(e))

    def _save(self, items: List[OfflineQueueItem]) -> None:
        self._storage.set_item(
            OFFLINE_QUEUE_KEY,
            json.dumps([asdict(i) for i in items], ensure_ascii=False),
        )
