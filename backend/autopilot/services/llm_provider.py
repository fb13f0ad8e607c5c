"""
LLM provider interface for chat-completion style models.

The default provider talks to an OpenAI-compatible gateway. Swap it with
`set_llm_provider` to plug another backend (tests install a fake one).
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from autopilot.services.errors import ConfigurationError
from autopilot.settings import get_settings

logger = logging.getLogger(__name__)


class LLMHTTPError(Exception):
    """Non-2xx answer from a chat-completion endpoint."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"HTTP {status_code}: {body[:300]}")
        self.status_code = status_code
        self.body = body


class ChatCompletion:
    """Result of one chat-completion call."""

    def __init__(
        self,
        content: str,
        *,
        message: dict | None = None,
        citations: list[str] | None = None,
        model: str = "unknown",
        raw: dict | None = None,
    ):
        self.content = content
        self.message = message or {}
        self.citations = citations or []
        self.model = model
        self.raw = raw

    @classmethod
    def from_response(cls, data: dict[str, Any], model: str) -> "ChatCompletion":
        choices = data.get("choices") or [{}]
        message = choices[0].get("message") or {}
        content = message.get("content")
        return cls(
            content if isinstance(content, str) else "",
            message=message,
            citations=data.get("citations") or [],
            model=data.get("model") or model,
            raw=data,
        )


def _client(timeout: float) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout)


async def post_chat_completion(
    url: str,
    api_key: str,
    payload: dict[str, Any],
    *,
    timeout: float,
) -> ChatCompletion:
    """POST an OpenAI-compatible chat-completion request.

    Raises LLMHTTPError on any status >= 400.
    """
    async with _client(timeout) as client:
        resp = await client.post(
            url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            json=payload,
        )
    if resp.status_code >= 400:
        raise LLMHTTPError(resp.status_code, resp.text)
    return ChatCompletion.from_response(resp.json(), payload.get("model", "unknown"))


class LLMProvider(ABC):
    """Abstract LLM provider. Implement `complete` to plug in a real model."""

    @abstractmethod
    async def complete(
        self,
        *,
        messages: list[dict[str, Any]],
        model: str,
        timeout: float | None = None,
        **options: Any,
    ) -> ChatCompletion:
        ...

    @property
    def configured(self) -> bool:
        return True


class GatewayLLMProvider(LLMProvider):
    """OpenAI-compatible AI gateway (content, captions and image models)."""

    async def complete(
        self,
        *,
        messages: list[dict[str, Any]],
        model: str,
        timeout: float | None = None,
        **options: Any,
    ) -> ChatCompletion:
        settings = get_settings()
        if not settings.llm_gateway_api_key:
            raise ConfigurationError("LOVABLE_API_KEY not configured")

        payload: dict[str, Any] = {"model": model, "messages": messages}
        payload.update({k: v for k, v in options.items() if v is not None})
        logger.debug("[llm] %s (%d messages)", model, len(messages))
        return await post_chat_completion(
            settings.llm_gateway_url,
            settings.llm_gateway_api_key,
            payload,
            timeout=timeout or settings.llm_timeout_sec,
        )

    @property
    def configured(self) -> bool:
        return bool(get_settings().llm_gateway_api_key)


# Singleton, swap to use another provider
_provider: LLMProvider = GatewayLLMProvider()


def get_llm_provider() -> LLMProvider:
    return _provider


def set_llm_provider(provider: LLMProvider) -> None:
    global _provider
    _provider = provider
