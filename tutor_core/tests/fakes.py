"""transport / exchange / service 测试共用的替身对象。"""

import asyncio

from tutor_core.domain.exceptions import ConfigurationError, NetworkError
from tutor_core.domain.models import ScrollGeometry


class FakeGenerativeClient:
    """可编排的 GenerativeClient。

    stream: 片段列表，其中的 Exception 实例读到时抛出；
    stream_error: 在第一个片段之前抛出；
    full_text / generate_error: 控制非流式调用的结果。
    stream_closed 记录流式生成器是否已被关闭。
    """

    name = "fake"

    def __init__(self, stream=None, stream_error=None, full_text="", generate_error=None):
        self.stream = list(stream or [])
        self.stream_error = stream_error
        self.full_text = full_text
        self.generate_error = generate_error
        self.prompts = []
        self.generate_calls = 0
        self.stream_closed = False

    async def generate(self, prompt):
        self.prompts.append(prompt)
        self.generate_calls += 1
        if self.generate_error is not None:
            raise self.generate_error
        return self.full_text

    async def generate_stream(self, prompt):
        self.prompts.append(prompt)
        try:
            if self.stream_error is not None:
                raise self.stream_error
            for item in self.stream:
                if isinstance(item, Exception):
                    raise item
                await asyncio.sleep(0)
                yield item
        finally:
            self.stream_closed = True


class FakeTransport:
    """按脚本回调片段的 TransportClient，可选地以异常结束。"""

    def __init__(self, fragments=(), error=None, gate=None):
        self.fragments = list(fragments)
        self.error = error
        self.gate = gate
        self.calls = []

    async def send(self, message, context, on_fragment, *, on_restart=None):
        self.calls.append((message, context))
        for fragment in self.fragments:
            on_fragment(fragment)
            await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error


class FakeViewport:
    def __init__(self, offset=0.0, viewport_height=400.0, content_height=400.0):
        self.offset = offset
        self.viewport_height = viewport_height
        self.content_height = content_height
        self.scroll_calls = []

    def measure(self):
        return ScrollGeometry(self.offset, self.viewport_height, self.content_height)

    def scroll_to_end(self, smooth=True):
        self.scroll_calls.append(smooth)
        self.offset = max(0.0, self.content_height - self.viewport_height)


class LaggingViewport(FakeViewport):
    """平滑滚动是异步动画：调用后偏移量要过一会儿才真正到底。"""

    def scroll_to_end(self, smooth=True):
        self.scroll_calls.append(smooth)
        if not smooth:
            self.offset = max(0.0, self.content_height - self.viewport_height)


async def no_sleep(_delay):
    return None


def network_error():
    return NetworkError(code="NETWORK_ERROR", message="network down")


def config_error():
    return ConfigurationError(code="MISSING_API_KEY", message="API key is not configured")
