"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在编排层统一捕获并转换为用户可读的提示。
"""

from typing import Literal, Optional


# 终端失败的分类：网络/连接、上游配置、未分类
FailureKind = Literal["network", "configuration", "unknown"]


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MISSING_API_KEY"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、model 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时、流被中断等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误。本项目不做重试，由用户决定是否再试。"""


class ValidationError(BusinessError):
    """参数校验失败。"""


class ConfigurationError(BusinessError):
    """上游配置缺失或无效，例如未设置 API 密钥。"""


class DeliveryError(BusinessError):
    """流式请求与非流式降级请求均失败时抛出。

    kind 给出分类，cause 保留最后一次失败的原始异常。
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        cause: Optional[BaseException] = None,
        **extra,
    ):
        super().__init__(code=f"DELIVERY_{kind.upper()}", message=message, http_status=502, **extra)
        self.kind = kind
        self.cause = cause


# 与原始前端一致的错误信息关键字
_NETWORK_MARKERS = ("error reading from the stream", "quic_protocol_error", "network")
_CONFIG_MARKERS = ("api key",)


def classify_failure(error: BaseException) -> FailureKind:
    """将任意异常归入 network / configuration / unknown 三类之一。

    先按类型判断，再退回到错误信息中的关键字匹配。
    """

    if isinstance(error, DeliveryError):
        return error.kind
    if isinstance(error, ConfigurationError):
        return "configuration"
    if isinstance(error, NetworkError):
        return "network"
    text = str(error).lower()
    if any(marker in text for marker in _NETWORK_MARKERS):
        return "network"
    if any(marker in text for marker in _CONFIG_MARKERS):
        return "configuration"
    return "unknown"
