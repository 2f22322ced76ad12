"""凭证来源。登录与会话刷新由外部负责，这里只读取当前 access token。"""

from typing import Optional, Protocol


class CredentialProvider(Protocol):
    async def get_token(self) -> Optional[str]:
        ...


class StaticCredentialProvider:
    def __init__(self, token: Optional[str]):
        self._token = token

    async def get_token(self) -> Optional[str]:
        return self._token


class SettingsCredentialProvider:
    """每次调用时从配置对象读取，便于运行期更新 token。"""

    def __init__(self, settings):
        self._settings = settings

    async def get_token(self) -> Optional[str]:
        return getattr(self._settings, "access_token", None)
