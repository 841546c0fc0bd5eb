"""对外 API 服务模块。

提供给宿主视图（GUI / TUI / Web 前端）的简化接口：
一个 TutorChatSession 绑定一份会话状态、一个编排器与一个滚动同步器。
"""

import asyncio
from typing import Optional, Tuple

from tutor_core.agents.exchange import ExchangeOrchestrator, ExchangeResult
from tutor_core.domain.conversation import ConversationState, greeting_entry
from tutor_core.domain.exceptions import DeliveryError
from tutor_core.domain.models import ConversationContext, ExchangeEntry
from tutor_core.infrastructure.logging.logger import logger
from tutor_core.providers import create_transport
from tutor_core.providers.base import TransportClient
from tutor_core.ui.scroll import ScrollSynchronizer, ScrollViewport


class TutorChatSession:
    """一个挂载中的聊天视图所需的全部状态。"""

    def __init__(
        self,
        context: ConversationContext,
        transport: TransportClient,
        viewport: Optional[ScrollViewport] = None,
        greeting: bool = True,
        **scroll_options,
    ):
        self.context = context
        self.conversation = ConversationState([greeting_entry(context)] if greeting else [])
        self.orchestrator = ExchangeOrchestrator(self.conversation, transport, context)
        self.scroll = ScrollSynchronizer(self.conversation, viewport, **scroll_options)

    # ---- 入站操作 ----

    async def submit(self, text: Optional[str] = None) -> Optional[ExchangeResult]:
        return await self.orchestrator.submit(text)

    def attach_viewport(self, viewport: ScrollViewport) -> None:
        """视图在会话创建之后才挂载时调用。"""

        self.scroll.attach(viewport)

    def jump_to_latest(self) -> None:
        self.scroll.jump_to_latest()

    def on_scroll(self, now: Optional[float] = None) -> None:
        self.scroll.on_scroll(now)

    # ---- 只读状态 ----

    @property
    def entries(self) -> Tuple[ExchangeEntry, ...]:
        return self.conversation.entries

    @property
    def is_loading(self) -> bool:
        return self.orchestrator.is_loading

    @property
    def is_at_bottom(self) -> bool:
        return self.scroll.is_at_bottom

    @property
    def show_jump_affordance(self) -> bool:
        return self.scroll.show_jump_affordance

    def indicator_for(self, entry: ExchangeEntry) -> Optional[str]:
        return self.orchestrator.indicator_for(entry)

    def close(self) -> None:
        self.scroll.close()
        self.orchestrator.close()


def open_session(
    subject: str,
    chapter: str,
    topic: str,
    viewport: Optional[ScrollViewport] = None,
    transport: Optional[TransportClient] = None,
    greeting: bool = True,
) -> TutorChatSession:
    """创建聊天会话；未指定 transport 时使用默认 Provider。"""

    context = ConversationContext(subject=subject, chapter=chapter, topic=topic)
    return TutorChatSession(
        context=context,
        transport=transport or create_transport(),
        viewport=viewport,
        greeting=greeting,
    )


def ask(
    message: str,
    subject: str,
    chapter: str,
    topic: str,
    transport: Optional[TransportClient] = None,
) -> str:
    """阻塞式单次问答，返回最终的回答文本。

    Raises:
        ValueError: message 为空。
        DeliveryError: 流式与降级请求都失败。
    """

    async def _run() -> str:
        session = open_session(subject, chapter, topic, transport=transport, greeting=False)
        try:
            result = await session.submit(message)
        finally:
            session.close()
        if result is None:
            raise ValueError("message must not be empty")
        if not result.ok:
            logger.error("One-shot ask failed", extra={"extra": {"kind": result.error_kind}})
            raise DeliveryError(kind=result.error_kind or "unknown", message=result.assistant_entry.content)
        return result.assistant_entry.content

    return asyncio.run(_run())
