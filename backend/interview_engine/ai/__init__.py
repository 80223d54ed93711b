from interview_engine.ai.client import OpenAICompatibleClient, is_rate_limit_error
from interview_engine.ai.conversation_store import ConversationSessionStore, build_conversation_backend
from interview_engine.ai.interviewer import InterviewerAI
from interview_engine.ai.orchestrator import ProviderExhausted, ProviderOrchestrator, ProviderUnavailable, parse_retry_after
from interview_engine.ai.parsing import parse_ai_response

__all__ = [
    "OpenAICompatibleClient",
    "is_rate_limit_error",
    "ConversationSessionStore",
    "build_conversation_backend",
    "InterviewerAI",
    "ProviderExhausted",
    "ProviderOrchestrator",
    "ProviderUnavailable",
    "parse_retry_after",
    "parse_ai_response",
]
