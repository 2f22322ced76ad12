"""Oracle Core 顶层包。

该包提供 Oracle 收藏品助手的客户端对话编排能力，
包括配置加载、领域模型、本地启发式分析、会话级缓存、
离线发送队列、跨组件信号槽、后端适配与会话生命周期管理。
"""

from oracle_core.api.service import OracleController, get_default_controller

__all__ = ["OracleController", "get_default_controller"]
