"""领域层模型与协议。

包含：
- models: ChatMessage / ChatRequest / ChatResult / RetryPolicy 与生成结果类型。
- conversation: 会话状态 ConversationState 与 PreferenceStore 协议。
- exceptions: 业务异常类型定义。
"""
