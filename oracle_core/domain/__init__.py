"""领域层模型与协议。

包含：
- models: ChatMessage / ClientContext / 各端点响应等统一数据模型。
- conversation: 会话身份与 ConversationSession 状态机。
- exceptions: 业务异常类型定义。
"""
