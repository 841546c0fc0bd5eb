"""会话记录与滚动容器之间的滚动同步。

ScrollSynchronizer 不直接操作控件：宿主视图提供一个 ScrollViewport 适配器，
负责测量滚动几何信息、滚动到末尾；去抖、是否在底部的判定以及
“跳到最新”按钮的显示都只是由可注入时钟驱动的普通状态。
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional, Protocol

from tutor_core.config.settings import settings
from tutor_core.domain.conversation import ConversationState
from tutor_core.domain.models import ConversationEvent, ScrollGeometry


Clock = Callable[[], float]


class ScrollViewport(Protocol):
    def measure(self) -> ScrollGeometry:
        ...

    def scroll_to_end(self, smooth: bool = True) -> None:
        ...


class Debouncer:
    """把一连串触发合并为静默期结束后的一次动作。

    只依赖传入的时间戳：trigger(now) 记录一次触发；距最后一次触发
    超过 quiet_period 后 ready(now) 为真；consume() 清除待处理状态。
    """

    def __init__(self, quiet_period: float):
        if quiet_period < 0:
            raise ValueError("quiet_period must be >= 0")
        self.quiet_period = quiet_period
        self._last_trigger: Optional[float] = None

    @property
    def pending(self) -> bool:
        return self._last_trigger is not None

    def trigger(self, now: float) -> None:
        self._last_trigger = now

    def ready(self, now: float) -> bool:
        if self._last_trigger is None:
            return False
        return now - self._last_trigger >= self.quiet_period

    def remaining(self, now: float) -> float:
        if self._last_trigger is None:
            return 0.0
        return max(0.0, self.quiet_period - (now - self._last_trigger))

    def consume(self) -> None:
        self._last_trigger = None

    cancel = consume


def is_at_bottom(geometry: ScrollGeometry, threshold: float) -> bool:
    """距末尾不足 threshold 像素，或内容根本无需滚动。"""

    if geometry.max_offset <= 0:
        return True
    return geometry.distance_to_bottom() < threshold


class ScrollSynchronizer:
    """决定是自动滚动到底部，还是显示“跳到最新”按钮。

    构造时订阅会话状态；只读取会话记录，只写自己的标志位。
    """

    def __init__(
        self,
        conversation: ConversationState,
        viewport: Optional[ScrollViewport] = None,
        *,
        debounce: Optional[float] = None,
        threshold: Optional[float] = None,
        clock: Clock = time.monotonic,
    ):
        self._conversation = conversation
        self._viewport = viewport
        self._threshold = settings.scroll_bottom_threshold if threshold is None else threshold
        self._debouncer = Debouncer(settings.scroll_debounce if debounce is None else debounce)
        self._clock = clock
        self._timer: Optional[asyncio.TimerHandle] = None
        self.is_at_bottom = True
        self._unsubscribe = conversation.subscribe(self.on_conversation_change)

    @property
    def show_jump_affordance(self) -> bool:
        return not self.is_at_bottom and len(self._conversation) > 1

    @property
    def measurement_pending(self) -> bool:
        return self._debouncer.pending

    def attach(self, viewport: ScrollViewport) -> None:
        """视图挂载晚于会话创建时再接入滚动容器，并立即滚到末尾。"""

        self._viewport = viewport
        self._drop_pending_measurement()
        self.is_at_bottom = True
        viewport.scroll_to_end(smooth=False)

    # ---- 会话变更 ----

    def on_conversation_change(self, event: ConversationEvent) -> None:
        if event.origin == "user":
            # 提交前尚未完成的测量已经过期，不能再覆盖强制到底部的结果
            self._drop_pending_measurement()
            self.is_at_bottom = True
        if self.is_at_bottom and self._viewport is not None:
            self._viewport.scroll_to_end(smooth=True)

    # ---- 滚动事件 ----

    def on_scroll(self, now: Optional[float] = None) -> None:
        """原始滚动事件；等这一串事件平息后才测量。"""

        now = self._clock() if now is None else now
        self._debouncer.trigger(now)
        self._arm_timer()

    def flush(self, now: Optional[float] = None) -> bool:
        """静默期已过则测量一次，返回是否进行了测量。"""

        now = self._clock() if now is None else now
        if not self._debouncer.ready(now):
            return False
        self._debouncer.consume()
        self._measure()
        return True

    def jump_to_latest(self) -> None:
        self._drop_pending_measurement()
        self.is_at_bottom = True
        if self._viewport is not None:
            self._viewport.scroll_to_end(smooth=False)

    def close(self) -> None:
        self._drop_pending_measurement()
        self._unsubscribe()

    # ---- 内部实现 ----

    def _drop_pending_measurement(self) -> None:
        self._debouncer.cancel()
        self._cancel_timer()

    def _measure(self) -> None:
        if self._viewport is None:
            return
        self.is_at_bottom = is_at_bottom(self._viewport.measure(), self._threshold)

    def _arm_timer(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # 没有事件循环时由调用方自行调用 flush()
            return
        self._cancel_timer()
        self._timer = loop.call_later(self._debouncer.quiet_period, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        now = self._clock()
        if not self.flush(now) and self._debouncer.pending:
            # 事件循环时间与注入时钟之间存在偏差
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self._debouncer.remaining(now), self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
