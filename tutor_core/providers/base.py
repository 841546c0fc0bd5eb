"""Provider 与 Transport 抽象接口。

编排层不直接依赖具体厂商的 HTTP 细节，而是依赖这里的协议：

- GenerativeClient：厂商适配器（如 GeminiClient），负责一次 prompt 的
  流式 / 非流式生成。
- TransportClient：在 GenerativeClient 之上实现“先流式、失败再降级”的
  增量交付，供 ExchangeOrchestrator 调用。
"""

from typing import AsyncIterator, Callable, Optional, Protocol

from tutor_core.domain.models import ConversationContext


FragmentCallback = Callable[[str], None]


class GenerativeClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志。
    - generate(prompt): 非流式调用，返回完整文本。
    - generate_stream(prompt): 流式调用，按到达顺序逐段产出文本。
    """

    name: str

    async def generate(self, prompt: str) -> str:
        ...

    def generate_stream(self, prompt: str) -> AsyncIterator[str]:
        ...


class TransportClient(Protocol):
    async def send(
        self,
        message: str,
        context: ConversationContext,
        on_fragment: FragmentCallback,
        *,
        on_restart: Optional[Callable[[], None]] = None,
    ) -> None:
        ...
