"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "tutor-chat"。
- provider_model：厂商实际提供的模型 ID，例如 "gemini-2.5-flash"。

上层只关心逻辑名，具体用哪个底层模型由这里集中配置。"""

from dataclasses import dataclass
from typing import Dict, Mapping


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_output_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]


# Gemini / Generative Language API 配置
GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    models={
        "tutor-chat": ModelConfig(
            logical_name="tutor-chat",
            provider_model="gemini-2.5-flash",
            max_output_tokens=8192,
            default_temperature=0.7,
        )
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "gemini": GEMINI_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")


def resolve_model(provider: ProviderConfig, logical_name: str) -> ModelConfig:
    """逻辑名未注册时，按原样当作厂商模型 ID 使用。"""

    cfg = provider.models.get(logical_name)
    if cfg is not None:
        return cfg
    fallback = next(iter(provider.models.values()))
    return ModelConfig(
        logical_name=logical_name,
        provider_model=logical_name,
        max_output_tokens=fallback.max_output_tokens,
        default_temperature=fallback.default_temperature,
    )
