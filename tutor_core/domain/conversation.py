"""可观察的会话状态容器。

ConversationState 只负责保存有序的 ExchangeEntry 列表：
条目只追加、不删除、不重排；唯一允许的原地修改是末尾条目的 content。
每次变更后同步通知订阅者（渲染层、ScrollSynchronizer）。
"""

from typing import Callable, List, Optional, Tuple

from .models import ConversationContext, ConversationEvent, EventOrigin, ExchangeEntry


Listener = Callable[[ConversationEvent], None]


class ConversationState:
    def __init__(self, entries: Optional[List[ExchangeEntry]] = None):
        self._entries: List[ExchangeEntry] = list(entries or [])
        self._listeners: List[Listener] = []
        self._discarded = False

    # ---- 读取 ----

    @property
    def entries(self) -> Tuple[ExchangeEntry, ...]:
        return tuple(self._entries)

    @property
    def last(self) -> Optional[ExchangeEntry]:
        return self._entries[-1] if self._entries else None

    @property
    def discarded(self) -> bool:
        return self._discarded

    def __len__(self) -> int:
        return len(self._entries)

    # ---- 订阅 ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """注册监听器，返回取消订阅的函数。"""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- 修改 ----

    def append(self, entry: ExchangeEntry, origin: EventOrigin = "system") -> None:
        if self._discarded:
            return
        self._entries.append(entry)
        self._notify(ConversationEvent(kind="append", entry=entry, origin=origin))

    def update_trailing_content(
        self,
        entry_id: str,
        mutate: Callable[[str], str],
        origin: EventOrigin = "stream",
    ) -> bool:
        """修改末尾条目的 content。

        entry_id 与末尾条目不一致时（过期回调）静默忽略并返回 False。
        """

        if self._discarded or not self._entries:
            return False
        entry = self._entries[-1]
        if entry.id != entry_id:
            return False
        entry.content = mutate(entry.content)
        self._notify(ConversationEvent(kind="update", entry=entry, origin=origin))
        return True

    def discard(self) -> None:
        """视图卸载：解除所有订阅，此后的修改均为空操作。"""

        self._discarded = True
        self._listeners.clear()

    def _notify(self, event: ConversationEvent) -> None:
        for listener in list(self._listeners):
            listener(event)


def greeting_entry(context: ConversationContext) -> ExchangeEntry:
    return ExchangeEntry(
        role="assistant",
        content=(
            f"Hi! I'm your AI tutor for {context.subject}. "
            f"I'm here to help you understand {context.chapter}. "
            f"What would you like to know about {context.topic}?"
        ),
        meta={"greeting": True},
    )
