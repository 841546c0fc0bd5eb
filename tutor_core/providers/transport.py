"""增量交付的 Transport Client。

StreamingTransport.send 先尝试 Provider 的流式接口，逐段回调 on_fragment；
流式建立或读取过程中任何异常都会降级为一次非流式请求，再把完整回答
按空格切分，以固定间隔逐词回调，模拟“打字”效果。
只有两次尝试都失败时才抛出 DeliveryError。
"""

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, List, Optional

from tutor_core.config.settings import settings
from tutor_core.domain.exceptions import DeliveryError, FailureKind, classify_failure
from tutor_core.domain.models import ConversationContext
from tutor_core.infrastructure.logging.logger import logger
from tutor_core.prompts import build_tutor_prompt
from tutor_core.providers.base import FragmentCallback, GenerativeClient


_FAILURE_MESSAGES = {
    "network": (
        "Network connection issue detected. This might be due to your internet "
        "connection or API service interruption. Please try again in a moment."
    ),
    "configuration": "API key configuration issue. Please check your environment setup.",
}


def split_into_fragments(text: str) -> List[str]:
    """按单个空格切分为逐词片段，拼接后与原文完全一致。

    >>> split_into_fragments("Rate of change.")
    ['Rate', ' of', ' change.']
    """

    words = text.split(" ")
    fragments = [words[0]] + [" " + word for word in words[1:]]
    # 仅首个片段可能为空串，丢弃后不影响拼接结果
    return [fragment for fragment in fragments if fragment]


def describe_failure(kind: FailureKind, error: BaseException) -> str:
    if kind in _FAILURE_MESSAGES:
        return _FAILURE_MESSAGES[kind]
    return getattr(error, "message", None) or str(error) or "An unexpected error occurred"


class StreamingTransport:
    """TransportClient 的默认实现。

    - client: 具体 Provider（GeminiClient 等）。
    - word_delay: 降级模式下两个片段之间的间隔（秒）。
    - sleep: 可注入的等待函数，测试中可替换为不等待的版本。
    """

    def __init__(
        self,
        client: GenerativeClient,
        word_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        locale: str = "en",
    ):
        self._client = client
        self._word_delay = settings.fallback_word_delay if word_delay is None else word_delay
        self._sleep = sleep
        self._locale = locale

    @property
    def name(self) -> str:
        return getattr(self._client, "name", "unknown")

    async def send(
        self,
        message: str,
        context: ConversationContext,
        on_fragment: FragmentCallback,
        *,
        on_restart: Optional[Callable[[], None]] = None,
    ) -> None:
        prompt = build_tutor_prompt(message, context, self._locale)
        log_ctx = {
            "provider": self.name,
            "subject": context.subject,
            "chapter": context.chapter,
            "topic": context.topic,
        }

        delivered = 0
        self._log(logging.INFO, "Sending streaming request", log_ctx)
        try:
            # on_fragment 抛错时也要及时关闭流，释放底层 HTTP 连接
            async with contextlib.aclosing(self._client.generate_stream(prompt)) as stream:
                async for fragment in stream:
                    if not fragment:
                        continue
                    on_fragment(fragment)
                    delivered += 1
            self._log(logging.INFO, "Stream completed", log_ctx, fragments=delivered)
            return
        except Exception as stream_error:
            self._log(
                logging.WARNING,
                "Streaming failed, falling back to regular request",
                log_ctx,
                fragments=delivered,
                error=str(stream_error),
                error_type=type(stream_error).__name__,
            )

        try:
            full_text = await self._client.generate(prompt)
        except Exception as fallback_error:
            kind = classify_failure(fallback_error)
            self._log(
                logging.ERROR,
                "Fallback request failed",
                log_ctx,
                kind=kind,
                error=str(fallback_error),
                error_type=type(fallback_error).__name__,
            )
            raise DeliveryError(
                kind=kind,
                message=describe_failure(kind, fallback_error),
                cause=fallback_error,
                provider=self.name,
            ) from fallback_error

        if delivered and on_restart is not None:
            on_restart()

        fragments = split_into_fragments(full_text)
        self._log(logging.INFO, "Replaying fallback response", log_ctx, fragments=len(fragments))
        for i, fragment in enumerate(fragments):
            if i:
                await self._sleep(self._word_delay)
            on_fragment(fragment)

    @staticmethod
    def _log(level: int, message: str, log_ctx: dict, **fields) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
