from fastapi import APIRouter, HTTPException, WebSocket
import asyncio
import json
import logging
import os
import uuid

from starlette.websockets import WebSocketState

from core.logger import log_event
from interview_engine.auth import bearer_token, resolve_user_id_from_token_async
from interview_engine.realtime.session_adapter import RealtimeSessionAdapter
from interview_engine.system_metrics import decrement_metric, increment_metric

router = APIRouter()
logger = logging.getLogger("interview_engine.api.ws_interview")

MAX_WS_TEXT_BYTES = max(1024, int(os.getenv("WS_MAX_TEXT_BYTES", "1048576")))


async def _send_text_with_lock(websocket: WebSocket, send_lock: asyncio.Lock, encoded_payload: str) -> None:
    async with send_lock:
        await websocket.send_text(encoded_payload)


@router.websocket("/ws/interview")
async def interview_ws(websocket: WebSocket):
    connection_id = str(uuid.uuid4())
    token = (
        bearer_token(websocket.headers.get("authorization"))
        or str(websocket.query_params.get("token") or "").strip()
        or str(websocket.query_params.get("access_token") or "").strip()
    )
    if not token:
        await websocket.close(code=1008, reason="Unauthorized")
        return
    try:
        user_id = await resolve_user_id_from_token_async(token)
    except HTTPException:
        await websocket.close(code=1008, reason="Unauthorized")
        return

    services = websocket.app.state.services
    send_lock = asyncio.Lock()

    await websocket.accept()
    increment_metric("ws_connections_active")

    def _log_event(event: str, **fields):
        log_event("ws_interview", event, adapter.session_id or "", connection_id=connection_id, **fields)

    async def _safe_send(payload: dict):
        if websocket.client_state != WebSocketState.CONNECTED:
            return
        try:
            encoded = json.dumps(payload, default=str)
        except (TypeError, ValueError) as exc:
            logger.warning("ws payload encode failed | connection_id=%s err=%s", connection_id, exc)
            return
        try:
            await _send_text_with_lock(websocket, send_lock, encoded)
        except Exception as exc:
            logger.warning("ws send failed | connection_id=%s err=%s", connection_id, exc)

    adapter = RealtimeSessionAdapter(
        state_machine=services.state_machine,
        speech=services.speech,
        owner_id=user_id,
        send=_safe_send,
        connection_id=connection_id,
    )
    _log_event("connect")

    try:
        while True:
            msg = await websocket.receive()
            if msg["type"] == "websocket.disconnect":
                _log_event("disconnect", reason="client_disconnect")
                break

            if msg.get("bytes"):
                await adapter.add_audio_chunk(msg["bytes"])
                continue

            text_payload = str(msg.get("text") or "")
            if not text_payload:
                continue
            if len(text_payload.encode("utf-8")) > MAX_WS_TEXT_BYTES:
                logger.warning("WS message too large | connection_id=%s bytes=%s", connection_id, len(text_payload.encode("utf-8")))
                await adapter.emit_error("Message too large", "protocol")
                continue
            try:
                payload = json.loads(text_payload)
            except ValueError:
                await adapter.emit_error("Invalid JSON message", "protocol")
                continue
            if not isinstance(payload, dict):
                await adapter.emit_error("Message must be a JSON object", "protocol")
                continue

            await adapter.handle(payload)
    except RuntimeError as exc:
        # starlette raises once the socket is gone mid-receive
        logger.info("ws receive loop stopped | connection_id=%s err=%s", connection_id, exc)
    finally:
        adapter.disconnect()
        decrement_metric("ws_connections_active")
        increment_metric("ws_disconnects_total")
        _log_event("closed")
