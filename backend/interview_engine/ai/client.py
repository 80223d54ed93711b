from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import openai
from openai import AsyncOpenAI

logger = logging.getLogger("interview_engine.ai.client")

_RATE_LIMIT_MARKERS = ("429", "quota", "resource_exhausted", "rate limit")
_ROLE_MAP = {"user": "user", "model": "assistant", "assistant": "assistant", "system": "system"}


class GenerativeClient(Protocol):
    async def generate(self, messages: list[dict], model: str, temperature: float | None = None) -> str:
        ...


def is_rate_limit_error(exc: BaseException) -> bool:
    if isinstance(exc, openai.RateLimitError):
        return True
    for attr in ("status_code", "status"):
        if getattr(exc, attr, None) == 429:
            return True
    message = str(exc or "").lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


class OpenAICompatibleClient:
    """Chat-completions client bound to a single credential.

    Works against any OpenAI-compatible endpoint (Gemini exposes one), so each
    configured key gets its own instance and rotation stays in the orchestrator.
    """

    def __init__(self, api_key: str, base_url: str | None = None, timeout_sec: float = 30.0):
        self._timeout_sec = float(timeout_sec)
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or None,
            timeout=self._timeout_sec,
            max_retries=0,
        )

    async def generate(self, messages: list[dict], model: str, temperature: float | None = None) -> str:
        payload = [
            {
                "role": _ROLE_MAP.get(str(item.get("role") or "user"), "user"),
                "content": str(item.get("content") or ""),
            }
            for item in messages
        ]
        kwargs = {}
        if temperature is not None:
            kwargs["temperature"] = float(temperature)

        response = await asyncio.wait_for(
            self._client.chat.completions.create(model=model, messages=payload, **kwargs),
            timeout=self._timeout_sec + 5.0,
        )
        if not response.choices:
            logger.warning("generate returned no choices | model=%s", model)
            return ""
        return str(response.choices[0].message.content or "")

    async def close(self) -> None:
        await self._client.close()
