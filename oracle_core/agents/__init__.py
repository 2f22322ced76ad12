"""编排层：消息编排器、扩展能力与会话生命周期管理。"""

from oracle_core.agents.extras import OracleExtras
from oracle_core.agents.lifecycle import ConversationLifecycleManager
from oracle_core.agents.orchestrator import MessageOrchestrator

__all__ = ["ConversationLifecycleManager", "MessageOrchestrator", "OracleExtras"]
