from __future__ import annotations

from dataclasses import dataclass
import logging

from fastapi import Request

from core.config import (
    AI_API_KEYS,
    AI_BACKOFF_BASE_SEC,
    AI_BASE_URL,
    AI_MAX_BACKOFF_RETRIES,
    AI_REQUEST_TIMEOUT_SEC,
    MODEL_NAME,
)
from interview_engine.ai.client import GenerativeClient, OpenAICompatibleClient
from interview_engine.ai.conversation_store import ConversationSessionStore, build_conversation_backend
from interview_engine.ai.interviewer import InterviewerAI
from interview_engine.ai.orchestrator import ProviderOrchestrator
from interview_engine.interview.profiles import LocalProfileStore
from interview_engine.interview.repository import SessionRepository, build_session_repository
from interview_engine.interview.state_machine import InterviewStateMachine
from interview_engine.speech.speech_service import SpeechService, build_speech_service

logger = logging.getLogger("interview_engine.dependencies")


@dataclass
class EngineServices:
    orchestrator: ProviderOrchestrator
    conversations: ConversationSessionStore
    interviewer: InterviewerAI
    speech: SpeechService
    repository: SessionRepository
    profiles: LocalProfileStore
    state_machine: InterviewStateMachine

    async def close(self) -> None:
        await self.conversations.close()
        await self.orchestrator.close()


def build_engine_services(
    clients: list[GenerativeClient] | None = None,
    speech: SpeechService | None = None,
    repository: SessionRepository | None = None,
    sleep=None,
) -> EngineServices:
    """Wire every long-lived engine service once; handlers reach them through app state."""
    if clients is None:
        clients = [
            OpenAICompatibleClient(key, base_url=AI_BASE_URL, timeout_sec=AI_REQUEST_TIMEOUT_SEC)
            for key in AI_API_KEYS
        ]
    if not clients:
        logger.warning("no AI provider credentials configured; every interview will use fallback content")

    orchestrator_kwargs = {}
    if sleep is not None:
        orchestrator_kwargs["sleep"] = sleep
    orchestrator = ProviderOrchestrator(
        clients,
        MODEL_NAME,
        max_backoff_retries=AI_MAX_BACKOFF_RETRIES,
        backoff_base_sec=AI_BACKOFF_BASE_SEC,
        **orchestrator_kwargs,
    )
    conversations = ConversationSessionStore(orchestrator, build_conversation_backend())
    interviewer = InterviewerAI(orchestrator, conversations)
    speech = speech or build_speech_service()
    repository = repository or build_session_repository()
    profiles = LocalProfileStore()
    state_machine = InterviewStateMachine(
        repository=repository,
        interviewer=interviewer,
        speech=speech,
        profiles=profiles,
    )
    logger.info("engine services ready | credentials=%s model=%s", len(clients), MODEL_NAME)
    return EngineServices(
        orchestrator=orchestrator,
        conversations=conversations,
        interviewer=interviewer,
        speech=speech,
        repository=repository,
        profiles=profiles,
        state_machine=state_machine,
    )


def get_engine_services(request: Request) -> EngineServices:
    return request.app.state.services
