"""会话编排器核心模块。

负责维护消息记录、组装请求（系统指令 + 确认回合 + 历史 + 当前提问）、
调用 Provider、在限流时按 RetryPolicy 退避重试，并把结果追加到会话中。

所有失败都在这里被转换为固定的助手回复，调用方（UI）永远不会收到异常。
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence
from uuid import uuid4

from dirimsi_core.agents.debounce import Debouncer
from dirimsi_core.agents.greeting import GreetingPolicy
from dirimsi_core.agents.quick_actions import get_quick_action
from dirimsi_core.config.settings import settings
from dirimsi_core.domain.conversation import ConversationState, PreferenceStore, StateListener
from dirimsi_core.domain.exceptions import (
    ApiError,
    MalformedResponseError,
    NetworkError,
    RateLimitError,
    UnauthorizedError,
    ValidationError,
)
from dirimsi_core.domain.models import (
    ChatMessage,
    ChatRequest,
    Failure,
    FailureKind,
    GenerationResult,
    ImageAttachment,
    RetryPolicy,
    Success,
)
from dirimsi_core.infrastructure.logging.logger import logger
from dirimsi_core.infrastructure.storage.preference_store import InMemoryPreferenceStore
from dirimsi_core.prompts import acknowledgement, load_system_prompt
from dirimsi_core.providers.base import ProviderClient


FALLBACK_MESSAGES: Dict[FailureKind, str] = {
    FailureKind.RATE_LIMITED: (
        "I'm receiving a lot of questions right now and have been temporarily rate-limited. "
        "Please wait a moment and try again."
    ),
    FailureKind.UNAUTHORIZED: (
        "My apologies, there is a connection issue with my knowledge source. "
        "Please try again later."
    ),
    FailureKind.MALFORMED_RESPONSE: (
        "I apologize, but I received an unusual response or no content. "
        "Could you please try rephrasing your question?"
    ),
    FailureKind.NETWORK_FAILURE: (
        "My apologies, I could not reach my knowledge source right now. "
        "Please check your connection or try again in a moment."
    ),
    FailureKind.CONFIGURATION_MISSING: (
        "I am not configured to reach my knowledge source yet: no API key has been provided. "
        "Please set GEMINI_API_KEY and reload."
    ),
}


@dataclass
class OrchestratorConfig:
    provider: str
    model: str
    assistant_name: str = "DirimSi AI"
    creator_attribution: str = ""
    image_analysis_prompt: str = "Describe the African cultural elements in this image."
    locale: str = "en"

    @classmethod
    def from_settings(cls, cfg: Any, provider_name: str) -> "OrchestratorConfig":
        return cls(
            provider=provider_name,
            model=getattr(cfg, "default_model", "culture-chat"),
            assistant_name=cfg.assistant_name,
            creator_attribution=cfg.creator_attribution,
            image_analysis_prompt=cfg.image_analysis_prompt,
        )


class ConversationOrchestrator:
    """把用户意图（文本、快捷操作、图片）变成一次完整的请求/回复交换。

    同一时刻最多只有一个请求在进行（busy 标志）；三个入口各自做尾沿防抖，
    防止 UI 在 busy 生效前被连续点击。状态变化后通知所有订阅者。
    """

    def __init__(
        self,
        provider_client: ProviderClient,
        *,
        config: Optional[OrchestratorConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        preferences: Optional[PreferenceStore] = None,
        greeting_policy: Optional[GreetingPolicy] = None,
        debounce_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        cfg: Any = settings,
    ):
        self._provider_client = provider_client
        self._config = config or OrchestratorConfig.from_settings(cfg, getattr(provider_client, "name", "gemini"))
        self._retry_policy = retry_policy or RetryPolicy(
            max_attempts=cfg.retry_max_attempts,
            initial_delay=cfg.retry_initial_delay,
            backoff_multiplier=cfg.retry_backoff_multiplier,
        )
        self._sleep = sleep

        window = cfg.debounce_seconds if debounce_seconds is None else debounce_seconds
        self._text_gate = Debouncer(window)
        self._quick_action_gate = Debouncer(window)
        self._image_gate = Debouncer(window)

        self._system_prompt = load_system_prompt(
            self._config.assistant_name,
            self._config.creator_attribution,
            locale=self._config.locale,
        )
        self._acknowledgement = acknowledgement(self._config.assistant_name)
        self._listeners: List[StateListener] = []

        if greeting_policy is None:
            greeting_policy = GreetingPolicy(
                preferences or InMemoryPreferenceStore(),
                cooldown=timedelta(hours=cfg.greeting_cooldown_hours),
            )
        self._state = ConversationState()
        self._state.append(ChatMessage(role="assistant", content=greeting_policy.greeting(self._config.assistant_name)))

    # ---- 状态访问 ----

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def messages(self) -> Sequence[ChatMessage]:
        return self._state.messages

    @property
    def busy(self) -> bool:
        return self._state.busy

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """订阅状态变化，返回取消订阅函数。"""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def stage_image(self, image: ImageAttachment) -> None:
        self._state.stage_image(image)
        self._notify()

    def clear_staged_image(self) -> None:
        self._state.clear_staged_image()
        self._notify()

    # ---- 入口（均经过防抖）----

    async def submit_text(self, text: str) -> Optional[ChatMessage]:
        """发送用户输入。空白输入或 busy 时静默忽略，返回 None。"""

        return await self._text_gate(self._submit_text, text)

    async def submit_quick_action(self, label: str, prompt: str) -> Optional[ChatMessage]:
        """会话中记录 label，实际发给模型的是 prompt。"""

        return await self._quick_action_gate(self._submit_quick_action, label, prompt)

    async def run_quick_action(self, key: str) -> Optional[ChatMessage]:
        action = get_quick_action(key)
        return await self.submit_quick_action(action.label, action.prompt)

    async def submit_image(
        self,
        image: Optional[ImageAttachment] = None,
        text: Optional[str] = None,
    ) -> Optional[ChatMessage]:
        """发送图片分析请求。

        busy 时静默忽略（传入的 image 也不会被暂存）；否则先暂存 image，
        没有暂存图片时同样忽略。
        一旦开始交换，无论成功与否暂存的图片都会被清除。
        """

        return await self._image_gate(self._submit_image, image, text)

    async def _submit_text(self, text: str) -> Optional[ChatMessage]:
        cleaned = (text or "").strip()
        if not cleaned or self._state.busy:
            return None
        return await self._exchange(ChatMessage(role="user", content=cleaned), cleaned, None)

    async def _submit_quick_action(self, label: str, prompt: str) -> Optional[ChatMessage]:
        if not (label or "").strip() or not (prompt or "").strip() or self._state.busy:
            return None
        return await self._exchange(ChatMessage(role="user", content=label), prompt, None)

    async def _submit_image(self, image: Optional[ImageAttachment], text: Optional[str]) -> Optional[ChatMessage]:
        if self._state.busy:
            return None
        if image is not None:
            self.stage_image(image)
        if self._state.pending_image is None:
            return None
        staged = self._state.take_staged_image()

        caption = (text or "").strip()
        if caption:
            label = caption
        elif staged.filename:
            label = f"Shared an image ({staged.filename}) for analysis."
        else:
            label = "Shared an image for analysis."
        prompt = caption or self._config.image_analysis_prompt
        return await self._exchange(ChatMessage(role="user", content=label, image=staged), prompt, staged)

    async def _exchange(
        self,
        user_message: ChatMessage,
        prompt: str,
        image: Optional[ImageAttachment],
    ) -> ChatMessage:
        """一次完整交换：追加用户消息 -> 生成 -> 追加助手消息。"""

        history = list(self._state.messages)
        self._state.begin_request()
        try:
            self._state.append(user_message)
            self._notify()
            result = await self.generate(history, prompt, image)
            if isinstance(result, Success):
                reply_text = result.text
            else:
                reply_text = FALLBACK_MESSAGES[result.kind]
            reply = ChatMessage(role="assistant", content=reply_text)
            self._state.append(reply)
        finally:
            self._state.end_request()
            self._notify()
        return reply

    # ---- 生成与重试 ----

    async def generate(
        self,
        history: Sequence[ChatMessage],
        prompt: str,
        image: Optional[ImageAttachment] = None,
    ) -> GenerationResult:
        """调用 Provider 并返回带标签的结果，Provider 失败不会抛出。

        限流时最多尝试 RetryPolicy.max_attempts 次，等待时间优先使用
        Provider 给出的提示，否则按指数退避计算。
        """

        start_time = time.time()
        req = self._build_request(history, prompt, image)
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "provider": self._config.provider,
            "model": self._config.model,
        }
        policy = self._retry_policy

        for attempt in range(1, policy.max_attempts + 1):
            self._log(
                logging.INFO,
                "Calling provider",
                log_ctx,
                attempt=attempt,
                message_count=len(req.messages),
                has_image=image is not None,
            )
            try:
                result = await self._provider_client.generate(req)
            except RateLimitError as e:
                if attempt >= policy.max_attempts:
                    self._log(logging.WARNING, "Rate limit retries exhausted", log_ctx, attempts=attempt)
                    return Failure(FailureKind.RATE_LIMITED, e.message)
                delay = e.retry_after if e.retry_after is not None else policy.delay_for(attempt)
                self._log(logging.WARNING, "Rate limited, backing off", log_ctx, attempt=attempt, delay_seconds=delay)
                await self._sleep(delay)
                continue
            except ValidationError as e:
                return self._failure(FailureKind.CONFIGURATION_MISSING, e, log_ctx)
            except UnauthorizedError as e:
                return self._failure(FailureKind.UNAUTHORIZED, e, log_ctx)
            except NetworkError as e:
                return self._failure(FailureKind.NETWORK_FAILURE, e, log_ctx)
            except (MalformedResponseError, ApiError) as e:
                return self._failure(FailureKind.MALFORMED_RESPONSE, e, log_ctx)
            except Exception as e:
                logger.exception("Provider raised an unexpected error", extra={"extra": log_ctx})
                return Failure(FailureKind.MALFORMED_RESPONSE, str(e))

            if result.usage:
                self._log(
                    logging.INFO,
                    "Token usage",
                    log_ctx,
                    prompt_tokens=result.usage.prompt_tokens,
                    completion_tokens=result.usage.completion_tokens,
                    total_tokens=result.usage.total_tokens,
                )
            self._log(
                logging.INFO,
                "Generation completed",
                log_ctx,
                attempts=attempt,
                elapsed_seconds=round(time.time() - start_time, 2),
            )
            return Success(result.text)

        return Failure(FailureKind.RATE_LIMITED)

    def _build_request(
        self,
        history: Sequence[ChatMessage],
        prompt: str,
        image: Optional[ImageAttachment],
    ) -> ChatRequest:
        # 历史只带文本，图片只随本次提问发送
        messages = [
            ChatMessage(role="user", content=self._system_prompt),
            ChatMessage(role="assistant", content=self._acknowledgement),
        ]
        for m in history:
            messages.append(ChatMessage(role=m.role, content=m.content, created_at=m.created_at))
        messages.append(ChatMessage(role="user", content=prompt, image=image))
        return ChatRequest(provider=self._config.provider, model=self._config.model, messages=messages)

    def _failure(self, kind: FailureKind, error: Exception, log_ctx: Dict[str, Any]) -> Failure:
        code = getattr(error, "code", type(error).__name__)
        self._log(logging.ERROR, "Generation failed", log_ctx, failure=kind.value, code=code, error=str(error))
        return Failure(kind, str(error))

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("State listener failed")

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
