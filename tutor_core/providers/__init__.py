"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider / Transport 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供厂商实现 (gemini_client) 与增量交付逻辑 (transport)。
"""

from typing import Callable, Dict, Optional

from tutor_core.config.settings import settings
from tutor_core.providers.base import GenerativeClient, TransportClient
from tutor_core.providers.gemini_client import GeminiClient
from tutor_core.providers.registry import ProviderConfig, get_provider_config
from tutor_core.providers.transport import StreamingTransport


_CLIENT_FACTORIES: Dict[str, Callable[..., GenerativeClient]] = {
    "gemini": GeminiClient,
}


def create_provider(name: Optional[str] = None) -> GenerativeClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。

    名称先在 registry 中解析为 ProviderConfig，未注册的名称抛出 KeyError。
    """

    provider_cfg: ProviderConfig = get_provider_config(name or getattr(settings, "default_provider", "gemini"))
    factory = _CLIENT_FACTORIES.get(provider_cfg.name)
    if factory is None:
        raise KeyError(f"No client implementation for provider: {provider_cfg.name!r}")
    return factory(settings, provider=provider_cfg)


def create_transport(name: Optional[str] = None) -> TransportClient:
    return StreamingTransport(create_provider(name))
