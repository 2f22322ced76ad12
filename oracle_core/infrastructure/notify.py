"""面向用户的提示通道。

真正的提示条（toast）由界面层实现；默认实现只写日志，便于无界面运行。
"""

from typing import List, Protocol, Tuple

from oracle_core.infrastructure.logging.logger import logger


class Notifier(Protocol):
    def error(self, message: str) -> None:
        ...

    def info(self, message: str) -> None:
        ...


class LoggingNotifier:
    def error(self, message: str) -> None:
        logger.error(message, extra={"extra": {"channel": "notice"}})

    def info(self, message: str) -> None:
        logger.info(message, extra={"extra": {"channel": "notice"}})


class RecordingNotifier:
    """把提示记录在内存里，供测试和调试界面读取。"""

    def __init__(self):
        self.notices: List[Tuple[str, str]] = []

    def error(self, message: str) -> None:
        self.notices.append(("error", message))

    def info(self, message: str) -> None:
        self.notices.append(("info", message))

    @property
    def errors(self) -> List[str]:
        return [m for level, m in self.notices if level == "error"]
