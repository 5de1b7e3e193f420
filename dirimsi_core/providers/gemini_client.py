"""Gemini Provider 适配器。

本模块负责：

1. 接收统一的 ChatRequest。
2. 将其转换为 generateContent 的请求格式：
   - URL: {base_url}/models/{model}:generateContent?key=<api_key>
   - Body: {"contents": [{"role": "user"|"model", "parts": [...]}]}
3. 调用 HTTP 接口并把网络/API 异常映射为统一的业务异常。
4. 将 candidates[0].content.parts[0].text 解析为 ChatResult。
"""

from typing import Any, Dict, List, Optional

import httpx

from dirimsi_core.config.settings import settings
from dirimsi_core.domain.exceptions import (
    ApiError,
    MalformedResponseError,
    NetworkError,
    RateLimitError,
    UnauthorizedError,
    ValidationError,
)
from dirimsi_core.domain.models import ChatMessage, ChatRequest, ChatResult, ChatUsage
from dirimsi_core.infrastructure.logging.logger import logger
from dirimsi_core.providers.registry import GEMINI_CONFIG, resolve_model


# 内部角色 -> Gemini 角色
_ROLE_MAP = {"user": "user", "assistant": "model"}


class GeminiClient:
    """Gemini generateContent 客户端实现。"""

    name = "gemini"

    def __init__(self, cfg=settings):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = cfg

    async def generate(self, req: ChatRequest) -> ChatResult:
        """执行一次非流式生成调用。

        步骤：
        1. 校验密钥（缺失属于配置错误，不可重试）。
        2. 构造 contents 请求体。
        3. 发送请求并把 429/401/403/其他状态码映射为对应异常。
        4. 解析响应，结构不符时抛出 MalformedResponseError。
        """

        api_key = getattr(self._settings, "gemini_api_key", None)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set")
        model = resolve_model(GEMINI_CONFIG, req.model)
        base = getattr(self._settings, "gemini_base_url", None) or GEMINI_CONFIG.base_url
        payload = self._build_payload(req)
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.post(
                    f"{base}/models/{model}:generateContent",
                    params={"key": api_key},
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e), http_status=503)

        if resp.status_code >= 400:
            self._raise_for_status(resp)

        try:
            data = resp.json()
        except ValueError:
            raise MalformedResponseError(code="MALFORMED_RESPONSE", message="Response body is not JSON", http_status=502)
        return self._parse_response(data, req)

    def _raise_for_status(self, resp: httpx.Response) -> None:
        body = self._safe_json(resp)
        error = body.get("error") if isinstance(body.get("error"), dict) else {}
        message = error.get("message") or resp.text or "Unknown error"
        logger.error(
            "Gemini API response error",
            extra={"extra": {"provider": self.name, "status": resp.status_code, "error": message}},
        )
        if resp.status_code == 429:
            # 限流错误交给上层做重试/退避
            raise RateLimitError(
                code="RATE_LIMIT",
                message=message,
                retry_after=self._retry_after(resp, error),
            )
        if resp.status_code in (401, 403):
            raise UnauthorizedError(code="UNAUTHORIZED", message=message, http_status=resp.status_code)
        raise ApiError(code="API_ERROR", message=message, http_status=resp.status_code)

    def _build_payload(self, req: ChatRequest) -> Dict[str, Any]:
        """将 ChatRequest 转成 generateContent 所需的请求 JSON。"""

        return {"contents": [self._message_to_payload(m) for m in req.messages]}

    @staticmethod
    def _message_to_payload(message: ChatMessage) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = []
        if message.content:
            parts.append({"text": message.content})
        if message.image is not None:
            parts.append(
                {
                    "inlineData": {
                        "mimeType": message.image.mime_type,
                        "data": message.image.as_base64(),
                    }
                }
            )
        return {"role": _ROLE_MAP[message.role], "parts": parts}

    def _parse_response(self, data: Any, req: ChatRequest) -> ChatResult:
        """将原始响应 JSON 解析为统一的 ChatResult。"""

        try:
            candidate = data["candidates"][0]
            text = candidate["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            logger.warning(
                "Unexpected response structure",
                extra={"extra": {"provider": self.name, "keys": sorted(data) if isinstance(data, dict) else None}},
            )
            raise MalformedResponseError(
                code="MALFORMED_RESPONSE",
                message="Response has no candidates[0].content.parts[0].text",
                http_status=502,
            )
        if not isinstance(text, str) or not text:
            raise MalformedResponseError(code="MALFORMED_RESPONSE", message="Empty candidate text", http_status=502)

        usage = None
        usage_raw = data.get("usageMetadata") or {}
        if usage_raw:
            usage = ChatUsage(
                prompt_tokens=usage_raw.get("promptTokenCount", 0),
                completion_tokens=usage_raw.get("candidatesTokenCount", 0),
                total_tokens=usage_raw.get("totalTokenCount", 0),
            )
        return ChatResult(
            provider=self.name,
            model=req.model,
            text=text,
            finish_reason=candidate.get("finishReason"),
            usage=usage,
            raw=data,
        )

    @staticmethod
    def _retry_after(resp: httpx.Response, error: Dict[str, Any]) -> Optional[float]:
        """读取 Provider 给出的重试提示。

        优先 Retry-After 头（秒），其次 google.rpc.RetryInfo 的 retryDelay（如 "12s"）。
        """

        header = resp.headers.get("Retry-After")
        if header:
            try:
                return max(float(header), 0.0)
            except ValueError:
                pass
        for detail in error.get("details") or []:
            if not isinstance(detail, dict) or not str(detail.get("@type", "")).endswith("RetryInfo"):
                continue
            delay = str(detail.get("retryDelay") or "").strip()
            if delay.endswith("s"):
                delay = delay[:-1]
            try:
                return max(float(delay), 0.0)
            except ValueError:
                return None
        return None

    @staticmethod
    def _safe_json(resp: httpx.Response) -> Dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}
