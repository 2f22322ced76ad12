"""离线队列重放。

网络恢复后由后台同步机制（或宿主应用）调用 replay()：逐条重新发送，
2xx 的记录出队并回调 on_delivered，失败的记录原样保留等待下一次重放。
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from oracle_core.domain.exceptions import BusinessError
from oracle_core.infrastructure.logging.logger import logger
from oracle_core.sync.offline_queue import OfflineQueue, OfflineQueueItem


DeliveredCallback = Callable[[OfflineQueueItem, Dict[str, Any]], Optional[Awaitable[None]]]


@dataclass
class ReplayReport:
    delivered: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class OfflineReplayer:
    def __init__(self, queue: OfflineQueue, backend, on_delivered: Optional[DeliveredCallback] = None):
        self._queue = queue
        self._backend = backend
        self._on_delivered = on_delivered

    async def replay(self) -> ReplayReport:
        report = ReplayReport()
        items = self._queue.items()
        if not items:
            return report
        logger.info("Replaying offline queue", extra={"extra": {"queue_size": len(items)}})

        for item in items:
            try:
                data = await self._backend.replay(item)
            except BusinessError as e:
                logger.warning(
                    "Offline replay failed",
                    extra={"extra": {"queue_id": item.id, "code": e.code, "error": e.message}},
                )
                report.failed.append(item.id)
                continue
            self._queue.remove(item.id)
            report.delivered.append(item.id)
            if self._on_delivered is not None:
                result = self._on_delivered(item, data)
                if result is not None:
                    await result

        logger.info(
            "Offline replay finished",
            extra={"extra": {"delivered": len(report.delivered), "failed": len(report.failed)}},
        )
        return report
