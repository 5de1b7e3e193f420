"""DirimSi Core 顶层包。

该包提供文化向导聊天助手的会话编排核心，
包括配置加载、领域模型、Gemini Provider 适配、
重试与防抖、欢迎语控制以及偏好存储等能力。
"""

from dirimsi_core.agents.orchestrator import ConversationOrchestrator
from dirimsi_core.domain.models import ChatMessage, ImageAttachment, RetryPolicy

__all__ = ["ConversationOrchestrator", "ChatMessage", "ImageAttachment", "RetryPolicy"]
