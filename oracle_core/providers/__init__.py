"""Oracle 后端集成层。

该包下的模块负责：
- 定义后端客户端抽象接口 (base)。
- 获取 Bearer 凭证 (auth)。
- 基于 httpx 的具体实现 (http_client)。
"""

from typing import Optional

import httpx

from oracle_core.config.settings import settings
from oracle_core.providers.auth import CredentialProvider, SettingsCredentialProvider
from oracle_core.providers.base import OracleBackend
from oracle_core.providers.http_client import OracleHttpClient


def create_backend(
    config=None,
    credentials: Optional[CredentialProvider] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> OracleBackend:
    """根据配置创建后端客户端，默认使用全局 settings 并从中读取凭证。"""

    config = config or settings
    return OracleHttpClient(config, credentials or SettingsCredentialProvider(config), transport=transport)
