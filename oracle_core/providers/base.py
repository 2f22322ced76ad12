"""后端客户端抽象接口。

编排器不直接依赖 httpx，而是依赖此协议，测试中可以换成桩实现。
所有方法返回解码后的 JSON；失败时抛 domain.exceptions 中的异常：

- AuthenticationMissing: 拿不到凭证。
- NetworkError: 网络层失败（连接失败、超时）。
- ApiError 及其子类: 服务端返回非 2xx。
"""

from typing import Any, Dict, Protocol

from oracle_core.sync.offline_queue import OfflineQueueItem


CHAT_PATH = "/api/oracle/chat"
SEE_PATH = "/api/oracle/see"
HUNT_PATH = "/api/oracle/hunt"
CREATE_PATH = "/api/oracle/create"
LEARN_PATH = "/api/oracle/learn"
INTRODUCTIONS_PATH = "/api/oracle/introductions"
CONVERSATIONS_PATH = "/api/oracle/conversations"


class OracleBackend(Protocol):
    name: str

    async def chat(self, body: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def see(self, body: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def hunt(self, body: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def create(self, body: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def learn(self, body: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def introductions(self, body: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def list_conversations(self) -> Dict[str, Any]:
        ...

    async def get_conversation(self, conversation_id: str) -> Dict[str, Any]:
        ...

    async def delete_conversation(self, conversation_id: str) -> None:
        ...

    async def replay(self, item: OfflineQueueItem) -> Dict[str, Any]:
        """重新发送一条离线队列中的请求。"""

        ...
