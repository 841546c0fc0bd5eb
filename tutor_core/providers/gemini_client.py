"""Gemini / Generative Language API Provider 适配器。

本模块负责：

1. 接收完整的 prompt 文本。
2. 将其转换为 Generative Language REST API 的请求格式。
3. 调用 HTTP 接口并把网络/API 异常包装为领域异常。
4. 从响应 JSON 中取出候选回答的文本。

端点：
- 非流式: POST {base_url}/models/{model}:generateContent
- 流式:   POST {base_url}/models/{model}:streamGenerateContent?alt=sse
- 认证:   x-goog-api-key: <api_key>
"""

import json
from typing import Any, AsyncIterator, Dict

import httpx

from tutor_core.config.settings import settings
from tutor_core.domain.exceptions import ApiError, ConfigurationError, NetworkError, RateLimitError
from tutor_core.infrastructure.logging.logger import logger
from tutor_core.providers.registry import GEMINI_CONFIG, ModelConfig, ProviderConfig, resolve_model


class GeminiClient:
    """Gemini 提供方客户端实现。"""

    name = "gemini"

    def __init__(self, cfg=settings, model: str | None = None, provider: ProviderConfig = GEMINI_CONFIG):
        self._settings = cfg
        self._provider = provider
        self._model = model or getattr(cfg, "default_model", "tutor-chat")

    # ---- 非流式 ----

    async def generate(self, prompt: str) -> str:
        model_cfg = self._model_config()
        url = f"{self._base_url()}/models/{model_cfg.provider_model}:generateContent"
        payload = self._build_payload(prompt, model_cfg)
        try:
            async with httpx.AsyncClient(timeout=self._timeout(), trust_env=False) as client:
                resp = await client.post(url, json=payload, headers=self._headers())
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=f"network error: {e}")
        self._raise_for_status(resp.status_code, resp.text)
        data = resp.json()
        if not data.get("candidates"):
            block = (data.get("promptFeedback") or {}).get("blockReason")
            raise ApiError(
                code="EMPTY_RESPONSE",
                message=f"Gemini returned no candidates (blockReason={block})",
                http_status=502,
            )
        return self._extract_text(data)

    # ---- 流式 ----

    async def generate_stream(self, prompt: str) -> AsyncIterator[str]:
        model_cfg = self._model_config()
        url = f"{self._base_url()}/models/{model_cfg.provider_model}:streamGenerateContent"
        payload = self._build_payload(prompt, model_cfg)
        try:
            async with httpx.AsyncClient(timeout=self._timeout(), trust_env=False) as client:
                async with client.stream(
                    "POST",
                    url,
                    params={"alt": "sse"},
                    json=payload,
                    headers=self._headers(),
                ) as resp:
                    if resp.status_code >= 400:
                        body = await resp.aread()
                        self._raise_for_status(resp.status_code, body.decode("utf-8", errors="replace"))
                    async for line in resp.aiter_lines():
                        if not line:
                            continue
                        data_str = line
                        if data_str.startswith("data:"):
                            data_str = data_str[5:].strip()
                        else:
                            data_str = data_str.strip()
                        if not data_str or data_str == "[DONE]":
                            continue
                        try:
                            payload_chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            logger.warning("Skipping malformed stream line", extra={"extra": {"line": data_str[:200]}})
                            continue
                        text = self._extract_text(payload_chunk)
                        if text:
                            yield text
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=f"Error reading from the stream (network): {e}")

    # ---- 辅助方法 ----

    def _model_config(self) -> ModelConfig:
        if not getattr(self._settings, "gemini_api_key", None):
            # 配置缺失在发起任何网络请求之前就失败
            raise ConfigurationError(code="MISSING_API_KEY", message="API key is not configured (GEMINI_API_KEY)")
        return resolve_model(self._provider, self._model)

    def _base_url(self) -> str:
        base = getattr(self._settings, "gemini_base_url", None) or self._provider.base_url
        return base.rstrip("/")

    def _timeout(self) -> float | None:
        return getattr(self._settings, "http_timeout", None)

    def _headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self._settings.gemini_api_key,
            "Content-Type": "application/json",
        }

    @staticmethod
    def _build_payload(prompt: str, model_cfg: ModelConfig) -> Dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": model_cfg.default_temperature,
                "maxOutputTokens": model_cfg.max_output_tokens,
            },
        }

    @staticmethod
    def _raise_for_status(status: int, body: str) -> None:
        if status < 400:
            return
        if status == 429:
            raise RateLimitError(code="RATE_LIMIT", message="Gemini rate limit", http_status=429)
        if status in (400, 401, 403) and "api key" in body.lower():
            raise ConfigurationError(code="INVALID_API_KEY", message=f"API key rejected: {body}", http_status=status)
        raise ApiError(code="API_ERROR", message=body, http_status=status)

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> str:
        """拼接首个候选回答中所有 part 的 text 字段。"""

        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        content = candidates[0].get("content") or {}
        parts = content.get("parts") or []
        return "".join(part.get("text") or "" for part in parts if isinstance(part, dict))
