"""离线发送队列与重放。"""

from oracle_core.sync.offline_queue import OfflineQueue, OfflineQueueItem
from oracle_core.sync.replay import OfflineReplayer, ReplayReport

__all__ = ["OfflineQueue", "OfflineQueueItem", "OfflineReplayer", "ReplayReport"]
