from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Protocol

from core.config import SESSION_STORE_PATH
from interview_engine.interview.errors import StaleSessionError
from interview_engine.interview.models import InterviewSession, InterviewStatus

logger = logging.getLogger("interview_engine.interview.repository")


class SessionRepository(Protocol):
    async def insert(self, session: InterviewSession) -> None:
        ...

    async def find(self, session_id: str, owner_id: str | None = None) -> InterviewSession | None:
        ...

    async def save(self, session: InterviewSession, expected_status: InterviewStatus | None = None) -> None:
        ...

    async def list_for_owner(
        self,
        owner_id: str,
        limit: int = 10,
        status: str | None = None,
        interview_type: str | None = None,
    ) -> list[InterviewSession]:
        ...


class LocalSessionRepository:
    """In-process repository keeping serialized copies so callers never share mutable state."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._rows: dict[str, dict] = {}

    def _visible(self, row: dict | None, owner_id: str | None) -> bool:
        if row is None:
            return False
        return owner_id is None or str(row.get("owner_id") or "") == str(owner_id)

    async def insert(self, session: InterviewSession) -> None:
        async with self._lock:
            self._rows[session.session_id] = session.to_dict()
            self._persist()

    async def find(self, session_id: str, owner_id: str | None = None) -> InterviewSession | None:
        sid = str(session_id or "").strip()
        if not sid:
            return None
        async with self._lock:
            row = self._rows.get(sid)
            if not self._visible(row, owner_id):
                return None
            return InterviewSession.from_dict(row)

    async def save(self, session: InterviewSession, expected_status: InterviewStatus | None = None) -> None:
        async with self._lock:
            current = self._rows.get(session.session_id)
            if expected_status is not None:
                stored = str((current or {}).get("status") or "")
                if stored != expected_status.value:
                    raise StaleSessionError(
                        f"session {session.session_id} is {stored or 'missing'}, expected {expected_status.value}"
                    )
            self._rows[session.session_id] = session.to_dict()
            self._persist()

    async def list_for_owner(
        self,
        owner_id: str,
        limit: int = 10,
        status: str | None = None,
        interview_type: str | None = None,
    ) -> list[InterviewSession]:
        capped = max(1, min(int(limit or 10), 100))
        async with self._lock:
            rows = [
                row
                for row in self._rows.values()
                if str(row.get("owner_id") or "") == str(owner_id)
                and (not status or row.get("status") == status)
                and (not interview_type or row.get("interview_type") == interview_type)
            ]
        rows.sort(key=lambda row: float(row.get("started_at") or 0.0), reverse=True)
        return [InterviewSession.from_dict(row) for row in rows[:capped]]

    def _persist(self) -> None:
        return None


class JsonFileSessionRepository(LocalSessionRepository):
    """Single-file JSON repository; every write replaces the file atomically via a .tmp sibling."""

    def __init__(self, path: str | Path):
        super().__init__()
        self._path = Path(path)
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            self._rows = {}
            return
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("session store unreadable, starting empty | path=%s err=%s", self._path, exc)
            self._rows = {}
            return
        if isinstance(payload, dict):
            self._rows = {
                str(key): value
                for key, value in payload.items()
                if isinstance(key, str) and isinstance(value, dict)
            }
        else:
            self._rows = {}

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(self._rows, ensure_ascii=False), encoding="utf-8")
        temp_path.replace(self._path)


def build_session_repository() -> SessionRepository:
    if SESSION_STORE_PATH:
        logger.info("using json session repository | path=%s", SESSION_STORE_PATH)
        return JsonFileSessionRepository(SESSION_STORE_PATH)
    return LocalSessionRepository()
