"""欢迎语频率控制。

通过注入的 PreferenceStore 保存两个时间戳标记：

- first_visit_at: 首次打开会话的时间。
- last_greeting_at: 上一次显示欢迎语的时间。

首次访问或距上次完整欢迎语超过冷却时间时显示完整欢迎语，
否则显示简短的“欢迎回来”。
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from dirimsi_core.domain.conversation import PreferenceStore
from dirimsi_core.infrastructure.logging.logger import logger


FIRST_VISIT_KEY = "dirimsi.first_visit_at"
LAST_GREETING_KEY = "dirimsi.last_greeting_at"

FULL_GREETING = (
    "Greetings! I am {assistant_name}. I am here to share the vast and beautiful tapestry of African cultures. "
    "Ask me about history, art, music, spirituality, or any other African traditional concept you wish to explore. "
    "You can also get a ✨ Cultural Insight, ✨ Proverb's Wisdom, ✨ African Dish Recipe, or ✨ African Name Origin "
    "by clicking the buttons below, or share an image for me to analyse!"
)
RETURNING_GREETING = "Welcome back! {assistant_name} is ready to continue exploring African cultures with you."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GreetingPolicy:
    def __init__(
        self,
        preferences: PreferenceStore,
        cooldown: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._preferences = preferences
        self._cooldown = cooldown
        self._clock = clock

    def greeting(self, assistant_name: str) -> str:
        """返回本次应显示的欢迎语，并更新时间戳标记。"""

        now = self._clock()
        first_visit = self._read(FIRST_VISIT_KEY)
        last_greeting = self._read(LAST_GREETING_KEY)

        if first_visit is None:
            self._preferences.set(FIRST_VISIT_KEY, now.isoformat())
        self._preferences.set(LAST_GREETING_KEY, now.isoformat())

        if first_visit is not None and last_greeting is not None and now - last_greeting < self._cooldown:
            return RETURNING_GREETING.format(assistant_name=assistant_name)
        return FULL_GREETING.format(assistant_name=assistant_name)

    def _read(self, key: str) -> Optional[datetime]:
        raw = self._preferences.get(key)
        if not raw:
            return None
        try:
            value = datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Ignoring unparseable greeting marker", extra={"extra": {"key": key}})
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value
