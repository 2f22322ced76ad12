"""会话级键值存储。

缓存、跨组件信号与离线队列都保存在这里。存储只在一个客户端会话内
有效，不跨设备共享；JsonFileSessionStorage 仅让同一会话在进程重启后
仍可读到数据。

调用方需要自行处理 StorageUnavailable，本模块不做降级。
"""

import json
import os
from pathlib import Path
from typing import Dict, List, Optional, Protocol
from uuid import uuid4

from oracle_core.config.settings import settings
from oracle_core.domain.exceptions import StorageUnavailable


class SessionStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...


class MemorySessionStorage:
    def __init__(self):
        self._data: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileSessionStorage:
    """单个 JSON 文件保存一个会话的全部键值，写入时原子替换。"""

    def __init__(self, session_id: str, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve() / "sessions"
        self._root.mkdir(parents=True, exist_ok=True)
        self._path = self._root / f"{session_id}.json"

    @property
    def path(self) -> Path:
        return self._path

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def keys(self) -> List[str]:
        return list(self._read())

    def _read(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageUnavailable(code="STORE_READ_ERROR", message=str(e))
        if not isinstance(data, dict):
            raise StorageUnavailable(code="STORE_READ_ERROR", message=f"{self._path} is not a mapping")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        tmp_path = self._root / f"{self._path.stem}.{uuid4().hex}.json.tmp"
        try:
            tmp_path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise StorageUnavailable(code="STORE_WRITE_ERROR", message=str(e))


class DisabledSessionStorage:
    """模拟被禁用的存储：任何访问都抛 StorageUnavailable。"""

    def _fail(self) -> None:
        raise StorageUnavailable(code="STORAGE_DISABLED", message="session storage is disabled")

    def get_item(self, key: str) -> Optional[str]:
        self._fail()

    def set_item(self, key: str, value: str) -> None:
        self._fail()

    def remove_item(self, key: str) -> None:
        self._fail()

    def keys(self) -> List[str]:
        self._fail()
        return []


def create_session_storage(kind: Optional[str] = None, session_id: Optional[str] = None) -> SessionStorage:
    """按配置创建会话存储，默认取 settings.session_storage。"""

    kind = (kind or settings.session_storage).lower()
    if kind == "file":
        return JsonFileSessionStorage(session_id or f"s-{uuid4().hex}")
    return MemorySessionStorage()
