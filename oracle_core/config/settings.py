"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("ORACLE_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class OracleSettings(BaseSettings):
    """客户端编排层配置。"""

    # ---- 远端服务 ----
    api_base_url: str = Field(
        default="http://localhost:3000",
        description="Oracle 后端根地址，各端点路径拼接在其后",
    )
    access_token: Optional[str] = Field(
        default=None,
        description="Bearer 凭证；为空时视为未登录",
    )
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 会话存储 ----
    storage_root: str = Field(default=".storage", description="存储根目录")
    session_storage: Literal["memory", "file"] = Field(
        default="memory",
        description="会话级存储后端：memory 或 file",
    )

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    # ---- 编排参数 ----
    max_context_messages: int = Field(default=20, ge=1, le=100, description="随请求发送的历史消息窗口")
    context_max_results: int = Field(default=3, ge=0, le=10, description="本地上下文检索条数上限")
    tier_cache_ttl: float = Field(default=300.0, gt=0, description="套餐缓存有效期（秒）")
    market_cache_ttl: float = Field(default=300.0, gt=0, description="行情缓存有效期（秒）")
    signal_max_age: float = Field(default=600.0, gt=0, description="跨组件信号的最长有效期（秒）")
    viewport_width: Optional[int] = Field(default=None, ge=0, description="客户端视口宽度（像素）")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("access_token")
    @classmethod
    def blank_token_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = OracleSettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = OracleSettings
