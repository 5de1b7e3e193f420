"""对外 API 服务模块。

提供简化的函数接口供渲染层调用，返回值均为普通 dict。
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

from dirimsi_core.agents.orchestrator import ConversationOrchestrator
from dirimsi_core.config.settings import settings
from dirimsi_core.domain.models import ChatMessage, ImageAttachment
from dirimsi_core.infrastructure.logging.logger import logger
from dirimsi_core.infrastructure.storage.preference_store import JsonPreferenceStore
from dirimsi_core.providers import create_provider


_orchestrator: Optional[ConversationOrchestrator] = None


def get_default_orchestrator() -> ConversationOrchestrator:
    """获取默认的会话编排器实例（单例）。"""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ConversationOrchestrator(
            create_provider(),
            preferences=JsonPreferenceStore(Path(settings.storage_root) / "preferences.json"),
        )
        logger.info("Created default orchestrator", extra={"extra": {"provider": settings.default_provider}})
    return _orchestrator


def reset_default_orchestrator() -> None:
    """丢弃当前会话（会话结束时调用）。"""
    global _orchestrator
    _orchestrator = None


def message_to_dict(message: ChatMessage) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "role": message.role,
        "content": message.content,
        "created_at": message.created_at.isoformat(),
    }
    if message.image is not None:
        payload["image"] = {
            "mime_type": message.image.mime_type,
            "filename": message.image.filename,
            "size": len(message.image.data),
        }
    return payload


def _reply(reply: Optional[ChatMessage], orchestrator: ConversationOrchestrator) -> Dict[str, Any]:
    return {
        "accepted": reply is not None,
        "reply": message_to_dict(reply) if reply is not None else None,
        "busy": orchestrator.busy,
        "message_count": len(orchestrator.messages),
    }


async def send_message(text: str) -> Dict[str, Any]:
    """发送一条用户消息。

    Returns:
        包含 accepted（是否真正发送）、reply（助手消息）等字段的字典
    """
    orchestrator = get_default_orchestrator()
    reply = await orchestrator.submit_text(text)
    return _reply(reply, orchestrator)


async def send_quick_action(key: str) -> Dict[str, Any]:
    """触发内置快捷操作（cultural_insight / proverb_wisdom / dish_recipe / name_origin）。"""
    orchestrator = get_default_orchestrator()
    reply = await orchestrator.run_quick_action(key)
    return _reply(reply, orchestrator)


async def send_image(path: Union[str, Path], text: Optional[str] = None) -> Dict[str, Any]:
    """读取图片文件并请求分析。"""
    orchestrator = get_default_orchestrator()
    reply = await orchestrator.submit_image(ImageAttachment.from_file(path), text)
    return _reply(reply, orchestrator)


def list_messages() -> list[Dict[str, Any]]:
    """列出当前会话的所有消息。"""
    return [message_to_dict(m) for m in get_default_orchestrator().messages]
