"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError。
Provider 层抛出这些异常，由 ConversationOrchestrator 统一转换为
固定的助手回复，UI 层不需要自己的错误分支。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、status 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等（完全没有拿到响应）。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class UnauthorizedError(ApiError):
    """API 返回 401/403：密钥无效或无权限。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，由上层负责重试/退避策略。

    retry_after: Provider 给出的建议等待秒数（可能为空）。
    """

    def __init__(
        self,
        code: str,
        message: str,
        http_status: int = 429,
        retry_after: Optional[float] = None,
        **extra,
    ):
        super().__init__(code, message, http_status, **extra)
        self.retry_after = retry_after


class MalformedResponseError(BusinessError):
    """2xx 响应体不是预期结构（缺少 candidates 文本等）。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""
