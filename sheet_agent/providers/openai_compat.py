"""OpenAI 兼容 Chat Completion 客户端。

DeepSeek、智谱、Gemini、通义千问、OpenAI 都提供同一套接口：
- URL: {base_url}/chat/completions，{base_url}/models
- 认证: Authorization: Bearer <api_key>

只依赖公共字段：model/messages/temperature/stream，以及流式 delta 中的
content / reasoning_content。
"""

import json
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from sheet_agent.config.settings import settings
from sheet_agent.domain.exceptions import ApiError, NetworkError, RateLimitError, TransportError, ValidationError
from sheet_agent.domain.models import ChatRequest, StreamDelta
from sheet_agent.infrastructure.logging.logger import logger
from sheet_agent.providers.registry import ProviderConfig
from sheet_agent.streaming.sse import decode_sse, delta_from_payload


def error_message_from_body(status_code: int, body: bytes) -> str:
    """非 2xx 响应体 -> 用户可读错误：error.message > message > "API error (status)"。"""

    fallback = f"API error ({status_code})"
    try:
        data = json.loads(body.decode("utf-8", errors="replace"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return fallback
    if not isinstance(data, dict):
        return fallback
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if data.get("message"):
        return str(data["message"])
    return fallback


class OpenAICompatibleClient:
    """OpenAI 兼容接口的 Provider 客户端实现。"""

    def __init__(
        self,
        provider: ProviderConfig,
        cfg=settings,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self._provider = provider
        self._settings = cfg
        self._api_key = api_key
        self._base_url = base_url
        self.name = provider.name

    # ---- 流式对话 ----

    async def stream_chat(self, req: ChatRequest) -> AsyncIterator[StreamDelta]:
        api_key = self._require_api_key()
        url = f"{self.base_url}/chat/completions"
        payload = self._build_payload(req)
        logger.info(
            "stream.open",
            extra={"extra": {"provider": self.name, "model": req.model, "messages": len(req.messages)}},
        )
        count = 0
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                async with client.stream("POST", url, json=payload, headers=self._headers(api_key)) as resp:
                    if resp.status_code >= 400:
                        body = await resp.aread()
                        raise self._error_for_status(resp.status_code, body)
                    async for event in decode_sse(resp.aiter_bytes()):
                        delta = delta_from_payload(event)
                        if delta is None or delta.is_empty:
                            continue
                        count += 1
                        yield delta
        except httpx.RequestError as e:
            logger.error("stream.network_error", extra={"extra": {"provider": self.name, "error": str(e)}})
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or e.__class__.__name__, provider=self.name)
        logger.info("stream.closed", extra={"extra": {"provider": self.name, "deltas": count}})

    # ---- 模型列表 ----

    async def list_models(self) -> List[str]:
        """GET {base_url}/models；任何失败都返回空列表。"""

        api_key = self._api_key or getattr(self._settings, "llm_api_key", None)
        if not api_key or not self.base_url:
            return []
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.get(f"{self.base_url}/models", headers=self._headers(api_key))
            if resp.status_code >= 400:
                logger.warning(
                    "models.http_error",
                    extra={"extra": {"provider": self.name, "status": resp.status_code}},
                )
                return []
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("models.fetch_failed", extra={"extra": {"provider": self.name, "error": str(e)}})
            return []
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list):
            return []
        return [str(item["id"]) for item in items if isinstance(item, dict) and item.get("id")]

    # ---- 辅助方法 ----

    @property
    def base_url(self) -> str:
        base = self._base_url or getattr(self._settings, "llm_base_url", None) or self._provider.base_url
        return base.rstrip("/")

    def _require_api_key(self) -> str:
        api_key = self._api_key or getattr(self._settings, "llm_api_key", None)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="LLM_API_KEY not set", provider=self.name)
        return api_key

    @staticmethod
    def _headers(api_key: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _build_payload(req: ChatRequest) -> Dict[str, Any]:
        return {
            "model": req.model,
            "messages": [m.to_payload() for m in req.messages],
            "stream": req.stream,
            "temperature": req.temperature,
        }

    def _error_for_status(self, status_code: int, body: bytes) -> TransportError:
        message = error_message_from_body(status_code, body)
        logger.error(
            "stream.http_error",
            extra={"extra": {"provider": self.name, "status": status_code, "error": message}},
        )
        if status_code == 429:
            return RateLimitError(code="RATE_LIMIT", message=message, http_status=429, provider=self.name)
        return ApiError(code="API_ERROR", message=message, http_status=status_code, provider=self.name)
