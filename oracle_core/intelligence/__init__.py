"""发送前在本地运行的启发式分析。

全部是纯函数，不访问网络，也不会失败：
- intent: 意图分类。
- energy: 情绪能量分类。
- context_search: 从缓存的助手回复中检索相关片段。
- device: 根据视口宽度判断设备类型。
"""

from oracle_core.intelligence.context_search import search_local_context
from oracle_core.intelligence.device import DeviceProfiler, classify_viewport
from oracle_core.intelligence.energy import detect_energy
from oracle_core.intelligence.intent import detect_intent

__all__ = [
    "DeviceProfiler",
    "classify_viewport",
    "detect_energy",
    "detect_intent",
    "search_local_context",
]
