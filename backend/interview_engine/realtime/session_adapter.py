from __future__ import annotations

import base64
import binascii
import logging
import time
from typing import Awaitable, Callable

from core.logger import log_event
from interview_engine.interview.errors import InterviewSessionError, SessionErrorKind
from interview_engine.interview.state_machine import (
    AnswerResult,
    InterviewStateMachine,
    PresenceInput,
    evaluation_view,
    question_view,
)
from interview_engine.speech.speech_service import SpeechService
from interview_engine.speech.voice_analysis import VoiceAnalysis

logger = logging.getLogger("interview_engine.realtime.session_adapter")

SendFn = Callable[[dict], Awaitable[None]]

MAX_AUDIO_CHUNKS = 4096


def _session_id(payload: dict) -> str:
    return str(payload.get("session_id") or payload.get("sessionId") or "").strip()


def _presence(payload: dict) -> PresenceInput | None:
    raw = payload.get("presence") or payload.get("body_language")
    if not isinstance(raw, dict):
        return None
    try:
        return PresenceInput(
            eye_contact_score=float(raw["eye_contact_score"]),
            posture_score=float(raw["posture_score"]),
        )
    except (KeyError, TypeError, ValueError):
        return None


def rate_limit_event(retry_after_sec: int, recoverable: bool = False) -> dict:
    return {
        "type": "error",
        "message": f"AI service is temporarily busy. Please wait {retry_after_sec} seconds and try again.",
        "error_type": "rate_limit",
        "retryAfter": int(retry_after_sec),
        "recoverable": recoverable,
    }


class RealtimeSessionAdapter:
    """Maps duplex interview messages onto ``InterviewStateMachine`` transitions.

    One adapter per connection. It owns only ephemeral state: the joined
    session id, the audio chunk buffer and the last voice analysis. Everything
    durable lives in the state machine.
    """

    def __init__(
        self,
        state_machine: InterviewStateMachine,
        speech: SpeechService,
        owner_id: str,
        send: SendFn,
        connection_id: str = "",
    ):
        self.state_machine = state_machine
        self.speech = speech
        self.owner_id = str(owner_id)
        self._send = send
        self.connection_id = connection_id
        self.session_id: str | None = None
        self.audio_buffer: list[bytes] = []
        self.last_voice_analysis: VoiceAnalysis | None = None

    async def emit(self, event_type: str, **payload) -> None:
        await self._send({**payload, "type": event_type})

    async def emit_error(self, message: str, error_type: str, kind: SessionErrorKind | None = None) -> None:
        payload = {"type": "error", "message": message, "error_type": error_type}
        if kind is not None:
            payload["kind"] = kind.value
        await self._send(payload)

    def _reset_ephemeral(self) -> None:
        self.audio_buffer = []
        self.last_voice_analysis = None

    def _target(self, payload: dict) -> str:
        return _session_id(payload) or str(self.session_id or "")

    async def handle(self, payload: dict) -> None:
        message_type = str(payload.get("type") or "").strip().lower()
        handler = {
            "join-interview": self.on_join,
            "audio-stream": self.on_audio_stream,
            "audio-complete": self.on_audio_complete,
            "submit-answer": self.on_submit_answer,
            "pause-interview": self.on_pause,
            "resume-interview": self.on_resume,
            "leave-interview": self.on_leave,
            "ping": self.on_ping,
        }.get(message_type)

        if handler is None:
            await self.emit_error(f"Unsupported message type: {message_type or 'missing'}", "protocol")
            return
        await handler(payload)

    async def on_join(self, payload: dict) -> None:
        session_id = _session_id(payload)
        if not session_id:
            await self.emit_error("session_id is required", "protocol", SessionErrorKind.INVALID_REQUEST)
            return
        try:
            joined = await self.state_machine.join(session_id, self.owner_id)
        except InterviewSessionError as exc:
            await self.emit_error(exc.message, "session", exc.kind)
            return

        if joined.terminal:
            await self.emit("interview-already-complete", **joined.to_dict())
            return

        self.session_id = session_id
        await self.emit("interview-joined", **joined.to_dict())
        log_event("realtime", "interview_joined", session_id, connection_id=self.connection_id)

    async def add_audio_chunk(self, chunk: bytes) -> None:
        if not chunk:
            return
        if len(self.audio_buffer) >= MAX_AUDIO_CHUNKS:
            await self.emit_error("Audio buffer is full; send audio-complete first", "audio")
            return
        self.audio_buffer.append(bytes(chunk))
        await self.emit("audio-received", chunks_received=len(self.audio_buffer))

    async def on_audio_stream(self, payload: dict) -> None:
        raw = payload.get("audio_chunk") or payload.get("audioChunk") or ""
        try:
            chunk = base64.b64decode(str(raw), validate=True)
        except (binascii.Error, ValueError):
            await self.emit_error("Audio processing failed", "audio")
            return
        await self.add_audio_chunk(chunk)

    async def on_audio_complete(self, payload: dict) -> None:
        if not self.audio_buffer:
            await self.emit("transcription-error", message="No audio data received")
            return

        audio = b"".join(self.audio_buffer)
        self.audio_buffer = []
        try:
            analysis = await self.speech.transcribe_and_analyze(audio)
        except Exception as exc:
            logger.warning("audio processing failed | session_id=%s err=%s", self._target(payload), exc)
            await self.emit("transcription-error", message="Failed to process audio")
            return

        self.last_voice_analysis = analysis
        await self.emit("transcription-complete", **analysis.summary())

    async def on_submit_answer(self, payload: dict) -> None:
        session_id = self._target(payload)
        if not session_id:
            await self.emit_error("session_id is required", "protocol", SessionErrorKind.INVALID_REQUEST)
            return

        async def on_stage(stage: str) -> None:
            await self.emit("answer-processing", status=stage)

        try:
            result = await self.state_machine.submit_answer(
                session_id,
                self.owner_id,
                str(payload.get("answer") or ""),
                voice_analysis=self.last_voice_analysis,
                presence=_presence(payload),
                track_presence=True,
                on_stage=on_stage,
            )
        except InterviewSessionError as exc:
            if exc.kind == SessionErrorKind.NO_PENDING_QUESTION:
                await self._auto_complete(session_id)
                return
            await self.emit_error(exc.message, "session", exc.kind)
            return
        except Exception:
            logger.exception("answer submission failed | session_id=%s", session_id)
            await self.emit_error("Failed to process answer. Please try again.", "server")
            return

        self.last_voice_analysis = None
        await self._emit_answer_result(result)

    async def _emit_answer_result(self, result: AnswerResult) -> None:
        await self.emit("answer-evaluated", **evaluation_view(result.response, result.skipped))
        if result.difficulty_changed:
            await self.emit(
                "difficulty-adjusted",
                new_difficulty=result.new_difficulty,
                reason=result.difficulty_reason,
            )
        if result.provider_notice is not None:
            await self._send(rate_limit_event(result.provider_notice.retry_after_sec, recoverable=True))

        session = result.session
        if result.is_complete:
            await self.emit(
                "interview-complete",
                session_id=session.session_id,
                overall_scores=session.overall_scores,
                analytics=session.analytics,
            )
            return
        view = dict(question_view(session, result.next_question) or {})
        view["question_type"] = view.pop("type", None)
        await self.emit("next-question", **view)

    async def _auto_complete(self, session_id: str) -> None:
        try:
            ended = await self.state_machine.force_complete(session_id, self.owner_id)
        except InterviewSessionError as exc:
            await self.emit_error(exc.message, "session", exc.kind)
            return
        self.last_voice_analysis = None
        await self.emit(
            "interview-complete",
            session_id=ended.session.session_id,
            overall_scores=ended.session.overall_scores,
            analytics=ended.session.analytics,
        )

    async def on_pause(self, payload: dict) -> None:
        session_id = self._target(payload)
        try:
            await self.state_machine.pause(session_id, self.owner_id)
        except InterviewSessionError as exc:
            await self.emit_error(exc.message, "session", exc.kind)
            return
        await self.emit("interview-paused", session_id=session_id)

    async def on_resume(self, payload: dict) -> None:
        session_id = self._target(payload)
        try:
            session = await self.state_machine.resume(session_id, self.owner_id)
        except InterviewSessionError as exc:
            await self.emit_error(exc.message, "session", exc.kind)
            return
        await self.emit(
            "interview-resumed",
            session_id=session_id,
            current_question=question_view(session, session.pending_response),
            progress=session.progress(),
        )

    async def on_leave(self, payload: dict) -> None:
        session_id = self._target(payload)
        self.session_id = None
        self._reset_ephemeral()
        await self.emit("interview-left", session_id=session_id)
        log_event("realtime", "interview_left", session_id, connection_id=self.connection_id)

    async def on_ping(self, payload: dict) -> None:
        await self.emit("pong", ts=time.time())

    def disconnect(self) -> None:
        self._reset_ephemeral()
