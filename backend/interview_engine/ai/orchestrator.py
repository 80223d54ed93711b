from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import math
import re
import time
from typing import Awaitable, Callable, TypeVar

from interview_engine.ai.client import GenerativeClient, is_rate_limit_error
from interview_engine.system_metrics import increment_metric, observe_ai_latency_ms

logger = logging.getLogger("interview_engine.ai.orchestrator")

T = TypeVar("T")

DEFAULT_RETRY_AFTER_SEC = 60
_RETRY_AFTER_RE = re.compile(r"retry in (\d+(?:\.\d+)?)", re.IGNORECASE)


def parse_retry_after(message: str | None, default: int = DEFAULT_RETRY_AFTER_SEC) -> int:
    match = _RETRY_AFTER_RE.search(str(message or ""))
    if not match:
        return int(default)
    try:
        return max(1, int(math.ceil(float(match.group(1)))))
    except ValueError:
        return int(default)


class ProviderExhausted(RuntimeError):
    def __init__(self, message: str, retry_after_sec: int = DEFAULT_RETRY_AFTER_SEC, last_error: BaseException | None = None):
        super().__init__(message)
        self.retry_after_sec = int(retry_after_sec)
        self.last_error = last_error


class ProviderUnavailable(ProviderExhausted):
    """No credentials are configured; callers fall back without a retry hint."""


@dataclass
class ProviderCredential:
    index: int
    client: GenerativeClient
    consecutive_failures: int = 0
    total_failures: int = 0


class ProviderOrchestrator:
    """Runs provider calls against a pool of credentials.

    Several credentials: a rate-limited call rotates round-robin to the next one,
    at most one attempt per credential. A single credential: exponential backoff
    on the same key up to ``max_backoff_retries``. Anything that is not a rate
    limit propagates untouched.
    """

    def __init__(
        self,
        clients: list[GenerativeClient],
        model: str,
        max_backoff_retries: int = 3,
        backoff_base_sec: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.model = str(model)
        self._credentials = [ProviderCredential(index=idx, client=client) for idx, client in enumerate(clients)]
        self._max_backoff_retries = max(0, int(max_backoff_retries))
        self._backoff_base_sec = max(0.0, float(backoff_base_sec))
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._current_index = 0

    @property
    def credential_count(self) -> int:
        return len(self._credentials)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def credentials(self) -> list[ProviderCredential]:
        return list(self._credentials)

    async def _select(self) -> ProviderCredential:
        async with self._lock:
            return self._credentials[self._current_index]

    async def _record_rate_limit(self, credential: ProviderCredential, rotate: bool) -> None:
        async with self._lock:
            credential.consecutive_failures += 1
            credential.total_failures += 1
            # Another session may already have moved past this credential.
            if rotate and self._current_index == credential.index:
                self._current_index = (credential.index + 1) % len(self._credentials)
                increment_metric("ai_key_rotations_total")

    async def _record_success(self, credential: ProviderCredential) -> None:
        async with self._lock:
            credential.consecutive_failures = 0

    async def _attempt(self, credential: ProviderCredential, call: Callable[[GenerativeClient], Awaitable[T]]) -> T:
        started = time.perf_counter()
        increment_metric("ai_calls_total")
        try:
            return await call(credential.client)
        finally:
            observe_ai_latency_ms((time.perf_counter() - started) * 1000.0)

    async def execute(self, call: Callable[[GenerativeClient], Awaitable[T]]) -> T:
        if not self._credentials:
            raise ProviderUnavailable("No AI provider credentials configured")

        if len(self._credentials) > 1:
            return await self._execute_with_rotation(call)
        return await self._execute_with_backoff(call)

    async def _execute_with_rotation(self, call: Callable[[GenerativeClient], Awaitable[T]]) -> T:
        last_error: BaseException | None = None
        for _ in range(len(self._credentials)):
            credential = await self._select()
            try:
                result = await self._attempt(credential, call)
            except Exception as exc:
                if not is_rate_limit_error(exc):
                    raise
                last_error = exc
                increment_metric("ai_rate_limited_total")
                logger.warning(
                    "provider credential rate limited | index=%s failures=%s err=%s",
                    credential.index,
                    credential.consecutive_failures + 1,
                    exc,
                )
                await self._record_rate_limit(credential, rotate=True)
                continue
            await self._record_success(credential)
            return result

        increment_metric("ai_provider_exhausted_total")
        raise ProviderExhausted(
            "All AI provider credentials are rate limited. Please try again later.",
            retry_after_sec=parse_retry_after(str(last_error or "")),
            last_error=last_error,
        )

    async def _execute_with_backoff(self, call: Callable[[GenerativeClient], Awaitable[T]]) -> T:
        credential = self._credentials[0]
        last_error: BaseException | None = None
        for attempt in range(self._max_backoff_retries + 1):
            try:
                result = await self._attempt(credential, call)
            except Exception as exc:
                if not is_rate_limit_error(exc):
                    raise
                last_error = exc
                increment_metric("ai_rate_limited_total")
                await self._record_rate_limit(credential, rotate=False)
                if attempt >= self._max_backoff_retries:
                    break
                delay = self._backoff_base_sec * (2 ** attempt)
                increment_metric("ai_backoff_retries_total")
                logger.warning(
                    "provider rate limited, backing off | attempt=%s/%s delay_sec=%s",
                    attempt + 1,
                    self._max_backoff_retries,
                    delay,
                )
                await self._sleep(delay)
                continue
            await self._record_success(credential)
            return result

        increment_metric("ai_provider_exhausted_total")
        raise ProviderExhausted(
            "AI provider retries exhausted. Please try again later.",
            retry_after_sec=parse_retry_after(str(last_error or "")),
            last_error=last_error,
        )

    async def generate(self, messages: list[dict], temperature: float | None = None) -> str:
        snapshot = [dict(item) for item in messages]
        return await self.execute(lambda client: client.generate(snapshot, self.model, temperature=temperature))

    def snapshot(self) -> dict:
        return {
            "model": self.model,
            "current_index": self._current_index,
            "credentials": [
                {
                    "index": credential.index,
                    "consecutive_failures": credential.consecutive_failures,
                    "total_failures": credential.total_failures,
                }
                for credential in self._credentials
            ],
        }

    async def close(self) -> None:
        for credential in self._credentials:
            closer = getattr(credential.client, "close", None)
            if closer is not None:
                await closer()
