"""对话条目与请求上下文的数据模型。

- ExchangeEntry: 会话记录中的一条消息（user / assistant）。
- ConversationContext: 当前学科/章节/知识点，仅透传给 Transport 构造提示词。
- ConversationEvent: ConversationState 变更时发给订阅者的通知。
- ScrollGeometry: 视图层测得的滚动几何信息。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Literal
from uuid import uuid4


# 会话中的消息角色
Role = Literal["user", "assistant"]

# 变更来源："user" 表示用户自己的提交，"stream" 表示增量写入
EventOrigin = Literal["user", "stream", "system"]


def new_entry_id() -> str:
    return f"m-{uuid4().hex}"


@dataclass
class ExchangeEntry:
    """一条会话记录。

    - content: assistant 条目初始为空并随增量不断追加；user 条目写入后不再改变。
    - meta: 附加信息（问候语、错误分类、是否走了降级等），不会发给 Provider。
    """

    role: Role
    content: str = ""
    id: str = field(default_factory=new_entry_id)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ConversationContext:
    """学科上下文，管线本身不解释其含义。"""

    subject: str
    chapter: str
    topic: str


@dataclass(frozen=True)
class ConversationEvent:
    kind: Literal["append", "update"]
    entry: ExchangeEntry
    origin: EventOrigin = "system"


@dataclass(frozen=True)
class ScrollGeometry:
    """滚动容器的测量结果（像素）。"""

    offset: float
    viewport_height: float
    content_height: float

    @property
    def max_offset(self) -> float:
        return max(0.0, self.content_height - self.viewport_height)

    def distance_to_bottom(self) -> float:
        return max(0.0, self.max_offset - self.offset)
