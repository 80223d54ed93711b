from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import json
import logging
import time
from typing import Protocol
import weakref

from core.config import CONVERSATION_TTL_SEC, REDIS_URL, USE_REDIS_CONVERSATIONS
from interview_engine.ai.orchestrator import ProviderOrchestrator
from interview_engine.ai.prompts import ACKNOWLEDGEMENT_TURN, build_system_prompt
from interview_engine.interview.models import InterviewContext

logger = logging.getLogger("interview_engine.ai.conversation_store")


@dataclass
class ConversationSession:
    session_id: str
    context: InterviewContext | None = None
    history: list[dict] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)

    def copy(self) -> "ConversationSession":
        return ConversationSession(
            session_id=self.session_id,
            context=InterviewContext.from_dict(self.context.to_dict()) if self.context else None,
            history=[dict(turn) for turn in self.history],
            created_at=self.created_at,
        )

    def to_json(self) -> str:
        return json.dumps(
            {
                "session_id": self.session_id,
                "context": self.context.to_dict() if self.context else None,
                "history": self.history,
                "created_at": self.created_at,
            },
            ensure_ascii=False,
        )

    @classmethod
    def from_json(cls, raw: str) -> "ConversationSession":
        data = json.loads(raw)
        context = data.get("context")
        return cls(
            session_id=str(data.get("session_id") or ""),
            context=InterviewContext.from_dict(context) if isinstance(context, dict) else None,
            history=[dict(turn) for turn in data.get("history") or [] if isinstance(turn, dict)],
            created_at=float(data.get("created_at") or time.time()),
        )


class ConversationBackend(Protocol):
    async def load(self, session_id: str) -> ConversationSession | None:
        ...

    async def save(self, session: ConversationSession) -> None:
        ...

    async def delete(self, session_id: str) -> None:
        ...

    async def close(self) -> None:
        ...


class LocalConversationBackend:
    def __init__(self, ttl_sec: float = CONVERSATION_TTL_SEC, clock=time.time):
        self._lock = asyncio.Lock()
        self._sessions: dict[str, ConversationSession] = {}
        self._touched_at: dict[str, float] = {}
        self._ttl_sec = float(ttl_sec)
        self._clock = clock

    def _prune_expired(self, now_ts: float) -> None:
        cutoff = now_ts - self._ttl_sec
        for session_id in [key for key, touched in self._touched_at.items() if touched <= cutoff]:
            self._sessions.pop(session_id, None)
            self._touched_at.pop(session_id, None)

    async def load(self, session_id: str) -> ConversationSession | None:
        if not session_id:
            return None
        async with self._lock:
            self._prune_expired(self._clock())
            session = self._sessions.get(session_id)
            return session.copy() if session is not None else None

    async def save(self, session: ConversationSession) -> None:
        if not session.session_id:
            return
        async with self._lock:
            now_ts = self._clock()
            self._prune_expired(now_ts)
            self._sessions[session.session_id] = session.copy()
            self._touched_at[session.session_id] = now_ts

    async def delete(self, session_id: str) -> None:
        async with self._lock:
            self._sessions.pop(session_id, None)
            self._touched_at.pop(session_id, None)

    async def count(self) -> int:
        async with self._lock:
            self._prune_expired(self._clock())
            return len(self._sessions)

    async def close(self) -> None:
        async with self._lock:
            self._sessions.clear()
            self._touched_at.clear()


class RedisConversationBackend:
    """Redis-backed conversation memory shared across worker processes.

    Keys:
    - interview:conversation:{session_id} (json string, expires after ttl_sec)
    """

    def __init__(self, redis_url: str, ttl_sec: int = 21600):
        try:
            import redis.asyncio as redis_async  # type: ignore
        except ImportError as exc:
            raise RuntimeError("redis package not installed; install 'redis' to share conversations across workers") from exc

        self._redis = redis_async.from_url(redis_url, decode_responses=True)
        self._ttl_sec = max(60, int(ttl_sec))

    @staticmethod
    def _key(session_id: str) -> str:
        return f"interview:conversation:{session_id}"

    async def load(self, session_id: str) -> ConversationSession | None:
        if not session_id:
            return None
        raw = await self._redis.get(self._key(session_id))
        if not raw:
            return None
        try:
            return ConversationSession.from_json(raw)
        except ValueError:
            logger.warning("discarding unreadable conversation | session_id=%s", session_id)
            return None

    async def save(self, session: ConversationSession) -> None:
        if not session.session_id:
            return
        await self._redis.set(self._key(session.session_id), session.to_json(), ex=self._ttl_sec)

    async def delete(self, session_id: str) -> None:
        await self._redis.delete(self._key(session_id))

    async def close(self) -> None:
        await self._redis.aclose()


def build_conversation_backend() -> ConversationBackend:
    if not USE_REDIS_CONVERSATIONS:
        return LocalConversationBackend()

    if not REDIS_URL:
        raise RuntimeError("USE_REDIS_CONVERSATIONS=true requires REDIS_URL")
    return RedisConversationBackend(REDIS_URL, ttl_sec=CONVERSATION_TTL_SEC)


class ConversationSessionStore:
    """Per-interview chat memory layered over the provider orchestrator."""

    def __init__(self, orchestrator: ProviderOrchestrator, backend: ConversationBackend | None = None):
        self._orchestrator = orchestrator
        self._backend = backend or LocalConversationBackend()
        self._locks_guard = asyncio.Lock()
        # Entries vanish once no caller holds or waits on the lock.
        self._session_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @property
    def backend(self) -> ConversationBackend:
        return self._backend

    async def _lock_for(self, session_id: str) -> asyncio.Lock:
        async with self._locks_guard:
            lock = self._session_locks.get(session_id)
            if lock is None:
                lock = asyncio.Lock()
                self._session_locks[session_id] = lock
            return lock

    async def get_or_create(self, session_id: str, context: InterviewContext) -> ConversationSession:
        lock = await self._lock_for(session_id)
        async with lock:
            existing = await self._backend.load(session_id)
            if existing is not None:
                return existing

            session = ConversationSession(
                session_id=session_id,
                context=context,
                history=[
                    {"role": "user", "content": build_system_prompt(context)},
                    {"role": "model", "content": ACKNOWLEDGEMENT_TURN},
                ],
            )
            await self._backend.save(session)
            return session.copy()

    async def has_session(self, session_id: str) -> bool:
        return await self._backend.load(session_id) is not None

    async def get_history(self, session_id: str) -> list[dict]:
        session = await self._backend.load(session_id)
        return list(session.history) if session else []

    async def send_message(self, session_id: str, text: str, temperature: float | None = None) -> str:
        lock = await self._lock_for(session_id)
        async with lock:
            session = await self._backend.load(session_id)
            if session is None:
                # Context is gone (restart or eviction); continue without it.
                logger.warning("conversation missing, recreating without context | session_id=%s", session_id)
                session = ConversationSession(session_id=session_id)
                await self._backend.save(session)

            session.history.append({"role": "user", "content": str(text or "")})
            try:
                reply = await self._orchestrator.generate(session.history, temperature=temperature)
            except Exception:
                session.history.pop()
                raise

            session.history.append({"role": "model", "content": reply})
            await self._backend.save(session)
            return reply

    async def clear(self, session_id: str) -> None:
        await self._backend.delete(session_id)
        async with self._locks_guard:
            self._session_locks.pop(session_id, None)

    async def close(self) -> None:
        await self._backend.close()
