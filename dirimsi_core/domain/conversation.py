from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Tuple

from .exceptions import BusinessError
from .models import ChatMessage, ImageAttachment


class PreferenceStore(Protocol):
    """极简的键值持久化接口（例如欢迎语时间戳）。"""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


@dataclass
class ConversationState:
    """单个会话的全部可变状态。

    - 消息只追加，不修改、不删除。
    - busy 为 True 当且仅当有请求在进行中。
    - pending_image 为等待发送的图片附件。
    """

    _messages: List[ChatMessage] = field(default_factory=list)
    busy: bool = False
    pending_image: Optional[ImageAttachment] = None

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: ChatMessage) -> None:
        self._messages.append(message)

    def begin_request(self) -> None:
        if self.busy:
            raise BusinessError(code="CONVERSATION_BUSY", message="A request is already in flight", http_status=409)
        self.busy = True

    def end_request(self) -> None:
        self.busy = False

    def stage_image(self, image: ImageAttachment) -> None:
        self.pending_image = image

    def take_staged_image(self) -> Optional[ImageAttachment]:
        image = self.pending_image
        self.pending_image = None
        return image

    def clear_staged_image(self) -> None:
        self.pending_image = None


StateListener = Callable[[ConversationState], None]
