"""统一的对话与结果数据模型。

本模块定义了编排器与 Provider 之间共享的标准数据结构：

- ChatMessage: 一条对话消息（user/assistant），可附带一张图片。
- ChatRequest: 发给底层 LLM Provider 的完整请求（按顺序的多轮消息）。
- ChatResult: 从 Provider 解析后的统一响应结果。
- RetryPolicy: 限流重试策略（纯值对象）。
- Success / Failure: generate 的带标签结果，失败不会以异常形式外泄。

Provider 适配器（如 GeminiClient）只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

import base64
import mimetypes
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Literal, Optional, List, Union


# 对话角色；Provider 负责映射到各自的角色词汇（Gemini 中 assistant -> "model"）
Role = Literal["user", "assistant"]

DEFAULT_IMAGE_MIME = "image/png"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ImageAttachment:
    """用户附带的一张图片，整体读入内存。"""

    data: bytes
    mime_type: str = DEFAULT_IMAGE_MIME
    filename: Optional[str] = None

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ImageAttachment":
        """读取图片文件，按扩展名猜测 MIME 类型。"""

        p = Path(path).expanduser()
        mime, _ = mimetypes.guess_type(p.name)
        return cls(data=p.read_bytes(), mime_type=mime or DEFAULT_IMAGE_MIME, filename=p.name)

    def as_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass(frozen=True)
class ChatMessage:
    """一条对话消息，既用于会话记录，也用于组装请求。

    - role: 消息角色，user 或 assistant。
    - content: 纯文本内容。
    - image: 可选的图片附件。
    - created_at: 创建时间（UTC）。

    写入会话后不会再被修改。
    """

    role: Role
    content: str
    image: Optional[ImageAttachment] = None
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class RetryPolicy:
    """限流重试策略。

    第 n 次尝试失败后的等待时间为 initial_delay * backoff_multiplier ** (n - 1)。
    backoff_multiplier 必须大于 1；initial_delay > 0 时各次等待严格递增。
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        if self.backoff_multiplier <= 1:
            raise ValueError("backoff_multiplier must be > 1")

    def delay_for(self, attempt: int) -> float:
        return self.initial_delay * self.backoff_multiplier ** (attempt - 1)


@dataclass
class ChatRequest:
    """一次完整的生成请求。

    编排器按固定顺序组装 messages（系统指令、确认回合、历史、当前提问），
    Provider 适配层负责把本结构转换成各家 API 的 JSON 请求体。
    """

    provider: str  # 逻辑 Provider 名，如 "gemini"
    model: str  # 逻辑模型名，如 "culture-chat"（再由 registry 映射为真实模型名）
    messages: List[ChatMessage]


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatResult:
    """一次生成调用的最终结果。

    - text: 第一个候选回答的文本。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    provider: str
    model: str
    text: str
    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None


class FailureKind(str, Enum):
    """generate 失败的分类。只有 RATE_LIMITED 会在本地重试。"""

    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    MALFORMED_RESPONSE = "malformed_response"
    NETWORK_FAILURE = "network_failure"
    CONFIGURATION_MISSING = "configuration_missing"


@dataclass(frozen=True)
class Success:
    text: str


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    detail: str = ""


GenerationResult = Union[Success, Failure]
