"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在编排层统一捕获并通过 Notifier 提示用户。
"""

from typing import Any, Dict, Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "NETWORK_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 endpoint、conversation_id 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class AuthenticationMissing(BusinessError):
    """没有可用的 Bearer 凭证。"""

    def __init__(self, message: str = "Not authenticated", **extra):
        super().__init__(code="AUTH_MISSING", message=message, http_status=401, **extra)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。只有这类错误会进入离线队列。"""


class ApiError(BusinessError):
    """服务端返回非 2xx 时抛出。

    payload 保存解码后的错误响应体（解析失败时为空 dict）。
    """

    def __init__(
        self,
        code: str,
        message: str,
        http_status: int = 400,
        payload: Optional[Dict[str, Any]] = None,
        **extra,
    ):
        self.payload = payload or {}
        super().__init__(code=code, message=message, http_status=http_status, **extra)


class RateLimitError(ApiError):
    """服务端限流或消息额度用尽（429）。"""


class EntitlementRequired(ApiError):
    """当前套餐无权使用该功能（403）。"""


class StorageUnavailable(BusinessError):
    """会话级存储不可用（被禁用、写满等）。"""


class ValidationError(BusinessError):
    """参数校验失败。"""
