import base64
import binascii
import logging

from fastapi import APIRouter, Depends, Request

from interview_engine.auth import get_user_id_async
from interview_engine.dependencies import EngineServices, get_engine_services
from interview_engine.interview.errors import InterviewSessionError, SessionErrorKind
from interview_engine.interview.state_machine import PresenceInput, StartRequest, question_view
from interview_engine.schemas import StartInterviewRequest, SubmitAnswerRequest

router = APIRouter(prefix="/api/interviews", tags=["interviews"])
logger = logging.getLogger("interview_engine.api.interviews")


def _decode_audio(audio_data: str | None) -> bytes | None:
    if not audio_data:
        return None
    try:
        return base64.b64decode(audio_data, validate=True)
    except (binascii.Error, ValueError):
        raise InterviewSessionError(SessionErrorKind.INVALID_REQUEST, "audio_data must be base64 encoded")


@router.post("/start", status_code=201)
async def start_interview(
    payload: StartInterviewRequest,
    request: Request,
    services: EngineServices = Depends(get_engine_services),
):
    user_id = await get_user_id_async(request)
    result = await services.state_machine.start(user_id, StartRequest(**payload.model_dump()))
    return result.to_dict()


@router.get("/history")
async def interview_history(
    request: Request,
    limit: int = 10,
    status: str | None = None,
    type: str | None = None,
    services: EngineServices = Depends(get_engine_services),
):
    user_id = await get_user_id_async(request)
    rows = await services.state_machine.history(user_id, limit=limit, status=status, interview_type=type)
    return {"interviews": rows, "count": len(rows)}


@router.post("/{session_id}/answer")
async def submit_answer(
    session_id: str,
    payload: SubmitAnswerRequest,
    request: Request,
    services: EngineServices = Depends(get_engine_services),
):
    user_id = await get_user_id_async(request)
    presence = None
    if payload.presence is not None:
        presence = PresenceInput(
            eye_contact_score=payload.presence.eye_contact_score,
            posture_score=payload.presence.posture_score,
        )
    result = await services.state_machine.submit_answer(
        session_id,
        user_id,
        payload.answer,
        audio=_decode_audio(payload.audio_data),
        presence=presence,
    )
    return result.to_dict()


@router.get("/{session_id}")
async def interview_status(
    session_id: str,
    request: Request,
    services: EngineServices = Depends(get_engine_services),
):
    user_id = await get_user_id_async(request)
    return await services.state_machine.get_status(session_id, user_id)


@router.post("/{session_id}/end")
async def end_interview(
    session_id: str,
    request: Request,
    services: EngineServices = Depends(get_engine_services),
):
    user_id = await get_user_id_async(request)
    result = await services.state_machine.end(session_id, user_id)
    return result.to_dict()


@router.post("/{session_id}/pause")
async def pause_interview(
    session_id: str,
    request: Request,
    services: EngineServices = Depends(get_engine_services),
):
    user_id = await get_user_id_async(request)
    session = await services.state_machine.pause(session_id, user_id)
    return {"session_id": session.session_id, "status": session.status.value, "paused_at": session.paused_at}


@router.post("/{session_id}/resume")
async def resume_interview(
    session_id: str,
    request: Request,
    services: EngineServices = Depends(get_engine_services),
):
    user_id = await get_user_id_async(request)
    session = await services.state_machine.resume(session_id, user_id)
    return {
        "session_id": session.session_id,
        "status": session.status.value,
        "current_question": question_view(session, session.pending_response),
        "progress": session.progress(),
    }


@router.get("/{session_id}/report")
async def interview_report(
    session_id: str,
    request: Request,
    services: EngineServices = Depends(get_engine_services),
):
    user_id = await get_user_id_async(request)
    return await services.state_machine.report(session_id, user_id)
