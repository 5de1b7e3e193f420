"""尾沿防抖。

窗口内的连续调用只执行最后一次；被覆盖的调用方拿到同一个结果。
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Set, Tuple


class Debouncer:
    def __init__(self, window: float):
        if window < 0:
            raise ValueError("debounce window must be >= 0")
        self._window = window
        self._timer: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[Tuple[Callable[..., Awaitable[Any]], tuple, dict]] = None
        self._waiters: List[asyncio.Future] = []
        self._tasks: Set[asyncio.Task] = set()

    @property
    def window(self) -> float:
        return self._window

    async def __call__(self, fn: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()
        self._waiters.append(waiter)
        self._pending = (fn, args, kwargs)
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self._window, self._fire)
        return await waiter

    def _fire(self) -> None:
        if self._pending is None:
            return
        fn, args, kwargs = self._pending
        waiters = self._waiters
        self._pending = None
        self._waiters = []
        self._timer = None

        task = asyncio.ensure_future(fn(*args, **kwargs))
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._settle(t, waiters))

    def _settle(self, task: asyncio.Task, waiters: List[asyncio.Future]) -> None:
        self._tasks.discard(task)
        error = None if task.cancelled() else task.exception()
        for waiter in waiters:
            if waiter.done():
                continue
            if task.cancelled():
                waiter.cancel()
            elif error is not None:
                waiter.set_exception(error)
            else:
                waiter.set_result(task.result())
