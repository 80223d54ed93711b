from __future__ import annotations

import logging

from interview_engine.ai.conversation_store import ConversationSessionStore
from interview_engine.ai.orchestrator import ProviderOrchestrator
from interview_engine.ai.parsing import parse_ai_response
from interview_engine.ai.prompts import (
    build_evaluation_prompt,
    build_follow_up_prompt,
    build_question_prompt,
    build_summary_prompt,
    personality_temperature,
)
from interview_engine.interview.models import InterviewContext, Question, ResponseRecord
from interview_engine.speech.voice_analysis import VoiceAnalysis

logger = logging.getLogger("interview_engine.ai.interviewer")


class InterviewerAI:
    """Question, evaluation, follow-up and summary generation for one engine instance.

    Question generation always goes through the session conversation so the
    interviewer keeps its memory. The other calls reuse that conversation when
    it exists and otherwise fall back to a single direct call.
    """

    def __init__(self, orchestrator: ProviderOrchestrator, conversations: ConversationSessionStore):
        self.orchestrator = orchestrator
        self.conversations = conversations

    async def _ask(self, session_id: str, prompt: str, temperature: float | None) -> str:
        if session_id and await self.conversations.has_session(session_id):
            return await self.conversations.send_message(session_id, prompt, temperature=temperature)
        return await self.orchestrator.generate([{"role": "user", "content": prompt}], temperature=temperature)

    async def generate_question(
        self,
        session_id: str,
        context: InterviewContext,
        previous: list[ResponseRecord] | None = None,
    ) -> dict:
        await self.conversations.get_or_create(session_id, context)
        raw = await self.conversations.send_message(
            session_id,
            build_question_prompt(context, list(previous or [])),
            temperature=personality_temperature(context.personality),
        )
        return parse_ai_response(raw)

    async def evaluate_answer(
        self,
        session_id: str,
        question: Question,
        answer_text: str,
        voice: VoiceAnalysis | None = None,
        personality: str | None = None,
    ) -> dict:
        raw = await self._ask(
            session_id,
            build_evaluation_prompt(question, answer_text, voice),
            personality_temperature(personality),
        )
        return parse_ai_response(raw)

    async def generate_follow_up(
        self,
        session_id: str,
        question_text: str,
        answer_text: str,
        overall: int,
        topics_missed: list[str] | None = None,
        personality: str | None = None,
    ) -> dict | None:
        try:
            raw = await self._ask(
                session_id,
                build_follow_up_prompt(question_text, answer_text, overall, list(topics_missed or [])),
                personality_temperature(personality),
            )
        except Exception as exc:
            logger.warning("follow-up generation skipped | session_id=%s err=%s", session_id, exc)
            return None
        return parse_ai_response(raw)

    async def generate_summary(self, session_id: str, summary_input: dict) -> dict:
        try:
            raw = await self.orchestrator.generate([{"role": "user", "content": build_summary_prompt(summary_input)}])
            return parse_ai_response(raw)
        finally:
            await self.conversations.clear(session_id)

    async def clear(self, session_id: str) -> None:
        await self.conversations.clear(session_id)
