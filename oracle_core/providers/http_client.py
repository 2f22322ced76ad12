"""基于 httpx 的 Oracle 后端客户端。

本模块负责：

1. 从 CredentialProvider 取 Bearer 凭证，取不到时抛 AuthenticationMissing。
2. 发送 JSON 请求，所有请求都受 settings.http_timeout 约束。
3. 把 httpx 的网络异常包装成 NetworkError，把非 2xx 响应包装成 ApiError，
   其中 403 为 EntitlementRequired、429 为 RateLimitError。
"""

from typing import Any, Dict, Optional

import httpx

from oracle_core.domain.exceptions import (
    ApiError,
    AuthenticationMissing,
    EntitlementRequired,
    NetworkError,
    RateLimitError,
)
from oracle_core.infrastructure.logging.logger import logger
from oracle_core.providers.auth import CredentialProvider
from oracle_core.providers.base import (
    CHAT_PATH,
    CONVERSATIONS_PATH,
    CREATE_PATH,
    HUNT_PATH,
    INTRODUCTIONS_PATH,
    LEARN_PATH,
    SEE_PATH,
)
from oracle_core.sync.offline_queue import OfflineQueueItem


class OracleHttpClient:
    name = "oracle"

    def __init__(
        self,
        settings,
        credentials: CredentialProvider,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        # Settings 里包含 api_base_url、超时等配置
        self._settings = settings
        self._credentials = credentials
        self._transport = transport

    async def chat(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", CHAT_PATH, json=body)

    async def see(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", SEE_PATH, json=body)

    async def hunt(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", HUNT_PATH, json=body)

    async def create(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", CREATE_PATH, json=body)

    async def learn(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", LEARN_PATH, json=body)

    async def introductions(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", INTRODUCTIONS_PATH, json=body)

    async def list_conversations(self) -> Dict[str, Any]:
        return await self._request("GET", CONVERSATIONS_PATH)

    async def get_conversation(self, conversation_id: str) -> Dict[str, Any]:
        return await self._request("GET", CONVERSATIONS_PATH, params={"id": conversation_id})

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._request("DELETE", CONVERSATIONS_PATH, params={"id": conversation_id})

    async def replay(self, item: OfflineQueueItem) -> Dict[str, Any]:
        headers = dict(item.headers)
        headers["Idempotency-Key"] = item.idempotency_key
        return await self._request("POST", item.url, json=item.body, headers=headers)

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        token = await self._credentials.get_token()
        if not token:
            raise AuthenticationMissing(endpoint=path)

        req_headers = dict(headers or {})
        req_headers["Authorization"] = f"Bearer {token}"
        if json is not None:
            req_headers["Content-Type"] = "application/json"

        url = f"{self._settings.api_base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.http_timeout,
                trust_env=False,
                transport=self._transport,
            ) as client:
                resp = await client.request(method, url, json=json, params=params, headers=req_headers)
        except httpx.TimeoutException as e:
            raise NetworkError(code="TIMEOUT", message=str(e) or "request timed out", endpoint=path)
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接被拒绝等
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__, endpoint=path)

        if resp.status_code >= 400:
            payload = self._error_payload(resp)
            message = payload.get("message") or payload.get("error") or resp.text or resp.reason_phrase
            logger.warning(
                "Oracle request rejected",
                extra={"extra": {"endpoint": path, "status": resp.status_code}},
            )
            if resp.status_code == 429:
                raise RateLimitError(code="RATE_LIMIT", message=message, http_status=429, payload=payload)
            if resp.status_code == 403:
                raise EntitlementRequired(code="ENTITLEMENT_REQUIRED", message=message, http_status=403, payload=payload)
            raise ApiError(code="API_ERROR", message=message, http_status=resp.status_code, payload=payload)

        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError:
            raise ApiError(code="BAD_RESPONSE", message="response is not JSON", http_status=resp.status_code)
        if not isinstance(data, dict):
            raise ApiError(code="BAD_RESPONSE", message="response is not a JSON object", http_status=resp.status_code)
        return data

    @staticmethod
    def _error_payload(resp: httpx.Response) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
