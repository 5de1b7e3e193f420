"""Provider 抽象接口。

编排器不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- 每个厂商实现一个 ProviderClient（如 GeminiClient）。
- 负责：将 ChatRequest 转成具体 API 请求，并把响应 JSON 解析为 ChatResult。
- 失败时抛出 domain.exceptions 中的异常，由编排器决定重试或降级。
"""

from typing import Protocol
from dirimsi_core.domain.models import ChatRequest, ChatResult


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。"""

    name: str

    async def generate(self, req: ChatRequest) -> ChatResult:
        ...
