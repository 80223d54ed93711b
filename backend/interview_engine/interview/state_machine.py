from __future__ import annotations

from dataclasses import asdict, dataclass
import logging
import time
from typing import Any, Awaitable, Callable

from core.config import DEFAULT_TOTAL_QUESTIONS, MAX_TOTAL_QUESTIONS
from core.logger import log_event
from interview_engine.ai.interviewer import InterviewerAI
from interview_engine.ai.orchestrator import ProviderExhausted, ProviderUnavailable
from interview_engine.analytics.session_analytics_builder import aggregate_scores, build_session_analytics
from interview_engine.difficulty.controller import LEVELS, DifficultyController, apply_decision
from interview_engine.interview.adapters import follow_up_text, normalize_evaluation, normalize_question
from interview_engine.interview.errors import InterviewSessionError, SessionErrorKind, StaleSessionError
from interview_engine.interview.fallback_content import (
    DEFAULT_NEXT_TEXT,
    DEFAULT_OPENING_TEXT,
    fallback_evaluation,
    fallback_opening_question,
    fallback_topic_question,
    is_skipped_answer,
    skipped_evaluation,
)
from interview_engine.interview.models import (
    INTERVIEW_TYPES,
    PERSONALITIES,
    Answer,
    DifficultyState,
    Evaluation,
    InterviewSession,
    InterviewStatus,
    Question,
    ResponseRecord,
)
from interview_engine.interview.profiles import LocalProfileStore
from interview_engine.interview.repository import SessionRepository
from interview_engine.scoring.aggregator import (
    DEFAULT_WEIGHTS,
    ScoringWeights,
    compute_response_scores,
    performance_level,
    presence_score,
    zero_scores,
)
from interview_engine.speech.speech_service import SpeechService
from interview_engine.speech.voice_analysis import VoiceAnalysis
from interview_engine.system_metrics import increment_metric

logger = logging.getLogger("interview_engine.interview.state_machine")

# linear16 mono at 16 kHz
AUDIO_BYTES_PER_SEC = 32000
FOLLOW_UP_BELOW = 70

StageCallback = Callable[[str], Awaitable[None]]


@dataclass
class StartRequest:
    interview_type: str
    personality: str | None = None
    difficulty: str | None = None
    total_questions: int | None = None
    sub_category: str | None = None
    target_company: str | None = None
    target_role: str | None = None
    voice_enabled: bool | None = None


@dataclass
class PresenceInput:
    eye_contact_score: float
    posture_score: float


@dataclass
class ProviderNotice:
    retry_after_sec: int
    message: str = "AI service is temporarily busy. Fallback content was used."

    def to_dict(self) -> dict:
        return asdict(self)


def question_view(session: InterviewSession, record: ResponseRecord | None) -> dict | None:
    if record is None:
        return None
    question = record.question
    return {
        "index": record.index,
        "question": question.text,
        "type": question.question_type,
        "difficulty": question.difficulty,
        "expected_topics": list(question.expected_topics),
        "time_allowed_sec": question.time_allowed_sec,
        "is_follow_up": question.is_follow_up,
        "progress": {"current": record.index + 1, "total": session.total_questions},
    }


def evaluation_view(record: ResponseRecord, skipped: bool) -> dict:
    return {
        "question_index": record.index,
        "scores": record.scores.to_dict() if record.scores else None,
        "skipped": skipped,
        "feedback": {
            "strengths": list(record.strengths),
            "weaknesses": list(record.weaknesses),
            "suggestions": list(record.suggestions),
        },
    }


@dataclass
class StartResult:
    session: InterviewSession
    question: ResponseRecord
    provider_notice: ProviderNotice | None = None

    def to_dict(self) -> dict:
        return {
            "session_id": self.session.session_id,
            "interview_type": self.session.interview_type,
            "personality": self.session.personality,
            "difficulty": self.session.difficulty.current,
            "total_questions": self.session.total_questions,
            "voice_enabled": self.session.voice_enabled,
            "current_question": question_view(self.session, self.question),
            "provider_notice": self.provider_notice.to_dict() if self.provider_notice else None,
        }


@dataclass
class AnswerResult:
    session: InterviewSession
    response: ResponseRecord
    evaluation: Evaluation
    skipped: bool
    difficulty_changed: bool
    difficulty_reason: str | None
    is_complete: bool
    next_question: ResponseRecord | None = None
    follow_up_generated: bool = False
    voice_analysis: VoiceAnalysis | None = None
    provider_notice: ProviderNotice | None = None

    @property
    def new_difficulty(self) -> str:
        return self.session.difficulty.current

    def to_dict(self) -> dict:
        return {
            "evaluation": evaluation_view(self.response, self.skipped),
            "voice_analysis": self.voice_analysis.summary() if self.voice_analysis else None,
            "difficulty_changed": self.difficulty_changed,
            "difficulty_reason": self.difficulty_reason,
            "new_difficulty": self.new_difficulty,
            "is_complete": self.is_complete,
            "progress": self.session.progress(),
            "next_question": question_view(self.session, self.next_question) if not self.is_complete else None,
            "follow_up_generated": self.follow_up_generated,
            "overall_scores": self.session.overall_scores if self.is_complete else None,
            "provider_notice": self.provider_notice.to_dict() if self.provider_notice else None,
        }


@dataclass
class EndResult:
    session: InterviewSession
    newly_completed: bool = True

    def to_dict(self) -> dict:
        return {
            "session_id": self.session.session_id,
            "questions_answered": self.session.questions_answered,
            "overall_scores": self.session.overall_scores,
            "analytics": self.session.analytics,
        }


@dataclass
class JoinResult:
    session: InterviewSession
    terminal: bool

    def to_dict(self) -> dict:
        session = self.session
        if self.terminal:
            return {
                "session_id": session.session_id,
                "status": session.status.value,
                "overall_scores": session.overall_scores,
                "completed_at": session.completed_at,
                "analytics": session.analytics,
            }
        return {
            "session_id": session.session_id,
            "status": session.status.value,
            "interview_type": session.interview_type,
            "difficulty": session.difficulty.current,
            "voice_enabled": session.voice_enabled,
            "current_question": question_view(session, session.pending_response),
            "progress": session.progress(),
        }


class InterviewStateMachine:
    """Authoritative lifecycle of one interview, shared by the REST and realtime surfaces.

    AI failures never abort a transition: questions and evaluations fall back to
    fixed content. Only state errors (missing session, wrong status, lost
    completion race) reach the caller, as ``InterviewSessionError``.
    """

    def __init__(
        self,
        repository: SessionRepository,
        interviewer: InterviewerAI,
        speech: SpeechService,
        profiles: LocalProfileStore | None = None,
        difficulty: DifficultyController | None = None,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
    ):
        self.repository = repository
        self.interviewer = interviewer
        self.speech = speech
        self.profiles = profiles or LocalProfileStore()
        self.difficulty = difficulty or DifficultyController()
        self.weights = weights

    # ----------- helpers -----------

    async def _load(self, session_id: str, owner_id: str) -> InterviewSession:
        session = await self.repository.find(session_id, owner_id)
        if session is None:
            raise InterviewSessionError(SessionErrorKind.SESSION_NOT_FOUND)
        return session

    async def _save(self, session: InterviewSession, expected_status: InterviewStatus) -> None:
        try:
            await self.repository.save(session, expected_status=expected_status)
        except StaleSessionError as exc:
            logger.warning("interview session changed underneath | session_id=%s err=%s", session.session_id, exc)
            raise InterviewSessionError(SessionErrorKind.CONCURRENT_UPDATE) from exc

    @staticmethod
    def _require_in_progress(session: InterviewSession) -> None:
        if session.status == InterviewStatus.COMPLETED:
            raise InterviewSessionError(SessionErrorKind.ALREADY_COMPLETED)
        if session.status != InterviewStatus.IN_PROGRESS:
            raise InterviewSessionError(SessionErrorKind.NOT_IN_PROGRESS)

    def _complete(self, session: InterviewSession) -> bool:
        if session.status == InterviewStatus.COMPLETED:
            return False
        now = time.time()
        session.status = InterviewStatus.COMPLETED
        session.completed_at = now
        session.last_activity_at = now
        session.paused_at = None
        session.current_question_index = len(session.responses)
        session.overall_scores = aggregate_scores(session.responses)
        session.analytics = build_session_analytics(session)
        increment_metric("interviews_completed_total")
        return True

    async def _release_conversation(self, session_id: str) -> None:
        try:
            await self.interviewer.clear(session_id)
        except Exception as exc:
            logger.warning("conversation release failed | session_id=%s err=%s", session_id, exc)

    @staticmethod
    def _notice(exc: ProviderExhausted) -> ProviderNotice | None:
        if isinstance(exc, ProviderUnavailable):
            return None
        return ProviderNotice(retry_after_sec=exc.retry_after_sec)

    # ----------- transitions -----------

    async def start(self, owner_id: str, request: StartRequest) -> StartResult:
        if request.interview_type not in INTERVIEW_TYPES:
            raise InterviewSessionError(SessionErrorKind.INVALID_REQUEST, f"Unsupported interview type: {request.interview_type}")
        if request.personality and request.personality not in PERSONALITIES:
            raise InterviewSessionError(SessionErrorKind.INVALID_REQUEST, f"Unsupported personality: {request.personality}")
        if request.difficulty and request.difficulty not in LEVELS:
            raise InterviewSessionError(SessionErrorKind.INVALID_REQUEST, f"Unsupported difficulty: {request.difficulty}")

        profile = await self.profiles.get_profile(owner_id)
        difficulty = request.difficulty or profile.preferred_difficulty
        if difficulty not in LEVELS:
            difficulty = "medium"
        personality = request.personality or profile.preferred_personality
        if personality not in PERSONALITIES:
            personality = "professional"
        total_questions = max(1, min(int(request.total_questions or DEFAULT_TOTAL_QUESTIONS), MAX_TOTAL_QUESTIONS))

        session = InterviewSession(
            owner_id=str(owner_id),
            interview_type=request.interview_type,
            personality=personality,
            difficulty=DifficultyState(initial=difficulty, current=difficulty),
            total_questions=total_questions,
            sub_category=request.sub_category,
            target_company=request.target_company,
            target_role=request.target_role,
            voice_enabled=profile.voice_enabled if request.voice_enabled is None else bool(request.voice_enabled),
            candidate_experience_years=profile.experience_years,
            candidate_skills=list(profile.skills),
        )

        notice: ProviderNotice | None = None
        used_fallback = False
        try:
            payload = await self.interviewer.generate_question(session.session_id, session.context(), [])
            question = normalize_question(payload, difficulty, DEFAULT_OPENING_TEXT)
        except ProviderExhausted as exc:
            notice = self._notice(exc)
            used_fallback = True
            question = fallback_opening_question(session.interview_type, difficulty)
            increment_metric("ai_fallbacks_total")
            logger.warning("opening question fallback, provider exhausted | session_id=%s", session.session_id)
        except Exception as exc:
            used_fallback = True
            question = fallback_opening_question(session.interview_type, difficulty)
            increment_metric("ai_fallbacks_total")
            logger.warning("opening question fallback | session_id=%s err=%s", session.session_id, exc)

        first = ResponseRecord(index=0, question=question)
        session.responses.append(first)
        await self.repository.insert(session)

        increment_metric("interviews_started_total")
        log_event(
            "state_machine",
            "interview_started",
            session.session_id,
            interview_type=session.interview_type,
            personality=session.personality,
            difficulty=difficulty,
            total_questions=total_questions,
            fallback_question=used_fallback,
        )
        return StartResult(session=session, question=first, provider_notice=notice)

    async def _voice_for(
        self,
        session: InterviewSession,
        audio: bytes | None,
        voice_analysis: VoiceAnalysis | None,
    ) -> VoiceAnalysis | None:
        if voice_analysis is not None:
            return voice_analysis if voice_analysis.has_signal else None
        if not audio or not session.voice_enabled:
            return None
        try:
            analysis = await self.speech.transcribe_and_analyze(audio)
        except Exception as exc:
            logger.warning("voice analysis skipped | session_id=%s err=%s", session.session_id, exc)
            return None
        return analysis if analysis.has_signal else None

    async def _evaluate(
        self,
        session: InterviewSession,
        question: Question,
        answer_text: str,
        voice: VoiceAnalysis | None,
    ) -> tuple[Evaluation, ProviderNotice | None]:
        try:
            payload = await self.interviewer.evaluate_answer(
                session.session_id,
                question,
                answer_text,
                voice,
                personality=session.personality,
            )
            return normalize_evaluation(payload), None
        except ProviderExhausted as exc:
            increment_metric("ai_fallbacks_total")
            logger.warning("evaluation fallback, provider exhausted | session_id=%s", session.session_id)
            return fallback_evaluation(), self._notice(exc)
        except Exception as exc:
            increment_metric("ai_fallbacks_total")
            logger.warning("evaluation fallback | session_id=%s err=%s", session.session_id, exc)
            return fallback_evaluation(), None

    async def _next_question(self, session: InterviewSession) -> tuple[Question, ProviderNotice | None]:
        difficulty = session.difficulty.current
        try:
            payload = await self.interviewer.generate_question(session.session_id, session.context(), session.responses)
            return normalize_question(payload, difficulty, DEFAULT_NEXT_TEXT), None
        except ProviderExhausted as exc:
            increment_metric("ai_fallbacks_total")
            logger.warning("topic question fallback, provider exhausted | session_id=%s", session.session_id)
            return fallback_topic_question(session.interview_type, len(session.responses), difficulty), self._notice(exc)
        except Exception as exc:
            increment_metric("ai_fallbacks_total")
            logger.warning("topic question fallback | session_id=%s err=%s", session.session_id, exc)
            return fallback_topic_question(session.interview_type, len(session.responses), difficulty), None

    async def submit_answer(
        self,
        session_id: str,
        owner_id: str,
        answer_text: str | None,
        audio: bytes | None = None,
        voice_analysis: VoiceAnalysis | None = None,
        presence: PresenceInput | None = None,
        track_presence: bool = False,
        on_stage: StageCallback | None = None,
    ) -> AnswerResult:
        session = await self._load(session_id, owner_id)
        self._require_in_progress(session)
        pending = session.pending_response
        if pending is None or pending.is_answered:
            raise InterviewSessionError(SessionErrorKind.NO_PENDING_QUESTION)

        if on_stage is not None:
            await on_stage("evaluating")

        voice = await self._voice_for(session, audio, voice_analysis)
        text = str(answer_text or "").strip() or (voice.transcript if voice else "")
        skipped = is_skipped_answer(text)
        notice: ProviderNotice | None = None

        if skipped:
            evaluation = skipped_evaluation(pending.question.expected_topics)
            scores = zero_scores()
            increment_metric("answers_skipped_total")
        else:
            evaluation, notice = await self._evaluate(session, pending.question, text, voice)
            scores = compute_response_scores(evaluation, voice, self.weights)
            if presence is not None:
                scores.presence = presence_score(presence.eye_contact_score, presence.posture_score)
            elif track_presence:
                scores.presence = presence_score(None, None)
            increment_metric("answers_evaluated_total")

        now = time.time()
        pending.answer = Answer(
            text="" if skipped else text,
            duration_sec=round(len(audio) / AUDIO_BYTES_PER_SEC, 2) if audio else 0.0,
            skipped=skipped,
        )
        pending.voice_analysis = voice
        pending.scores = scores
        pending.strengths = list(evaluation.strengths)
        pending.weaknesses = list(evaluation.weaknesses)
        pending.suggestions = list(evaluation.suggestions)
        pending.topics_covered = list(evaluation.topics_covered)
        pending.topics_missed = list(evaluation.topics_missed)
        pending.completed_at = now

        decision = self.difficulty.decide([item.overall for item in session.answered_responses], session.difficulty.current)
        difficulty_changed = apply_decision(session.difficulty, decision, pending.index)
        if difficulty_changed:
            increment_metric("difficulty_adjustments_total")
            logger.info(
                "difficulty adjusted | session_id=%s from=%s to=%s",
                session.session_id,
                decision.from_level,
                decision.to_level,
            )

        session.questions_answered += 1
        session.last_activity_at = now

        next_record: ResponseRecord | None = None
        follow_up_generated = False
        is_complete = session.questions_answered >= session.total_questions

        if is_complete:
            self._complete(session)
        else:
            if on_stage is not None:
                await on_stage("generating-question")

            question: Question | None = None
            if not skipped and evaluation.should_follow_up and scores.overall < FOLLOW_UP_BELOW:
                payload = await self.interviewer.generate_follow_up(
                    session.session_id,
                    pending.question.text,
                    text,
                    scores.overall,
                    evaluation.topics_missed,
                    personality=session.personality,
                )
                follow_up = follow_up_text(payload)
                if follow_up:
                    question = Question(
                        text=follow_up,
                        question_type="follow-up",
                        difficulty=session.difficulty.current,
                        expected_topics=list(evaluation.topics_missed),
                        is_follow_up=True,
                    )
                    pending.follow_up = question
                    follow_up_generated = True
                    increment_metric("follow_ups_generated_total")

            if question is None:
                question, question_notice = await self._next_question(session)
                notice = notice or question_notice

            next_record = ResponseRecord(index=len(session.responses), question=question)
            session.responses.append(next_record)
            session.current_question_index = next_record.index

        await self._save(session, InterviewStatus.IN_PROGRESS)
        if is_complete:
            await self._release_conversation(session.session_id)

        log_event(
            "state_machine",
            "answer_evaluated",
            session.session_id,
            question_index=pending.index,
            overall=scores.overall,
            skipped=skipped,
            fallback=evaluation.is_fallback,
            difficulty=session.difficulty.current,
            follow_up=follow_up_generated,
            complete=is_complete,
        )
        return AnswerResult(
            session=session,
            response=pending,
            evaluation=evaluation,
            skipped=skipped,
            difficulty_changed=difficulty_changed,
            difficulty_reason=decision.reason if difficulty_changed else None,
            is_complete=is_complete,
            next_question=next_record,
            follow_up_generated=follow_up_generated,
            voice_analysis=voice,
            provider_notice=notice,
        )

    async def end(self, session_id: str, owner_id: str) -> EndResult:
        session = await self._load(session_id, owner_id)
        self._require_in_progress(session)
        self._complete(session)
        await self._save(session, InterviewStatus.IN_PROGRESS)
        await self._release_conversation(session.session_id)
        log_event("state_machine", "interview_ended", session.session_id, questions_answered=session.questions_answered)
        return EndResult(session=session)

    async def force_complete(self, session_id: str, owner_id: str) -> EndResult:
        """Complete a session whose pending index no longer points at a response."""
        session = await self._load(session_id, owner_id)
        if session.status == InterviewStatus.COMPLETED:
            return EndResult(session=session, newly_completed=False)
        if session.status == InterviewStatus.ABANDONED:
            raise InterviewSessionError(SessionErrorKind.SESSION_ABANDONED)

        previous = session.status
        self._complete(session)
        await self._save(session, previous)
        await self._release_conversation(session.session_id)
        log_event(
            "state_machine",
            "interview_auto_completed",
            session.session_id,
            level=logging.WARNING,
            questions_answered=session.questions_answered,
            responses=len(session.responses),
        )
        return EndResult(session=session)

    async def pause(self, session_id: str, owner_id: str) -> InterviewSession:
        session = await self._load(session_id, owner_id)
        self._require_in_progress(session)
        now = time.time()
        session.status = InterviewStatus.PAUSED
        session.paused_at = now
        session.last_activity_at = now
        await self._save(session, InterviewStatus.IN_PROGRESS)
        log_event("state_machine", "interview_paused", session.session_id)
        return session

    async def resume(self, session_id: str, owner_id: str) -> InterviewSession:
        session = await self._load(session_id, owner_id)
        if session.status != InterviewStatus.PAUSED:
            raise InterviewSessionError(SessionErrorKind.NOT_PAUSED)
        session.status = InterviewStatus.IN_PROGRESS
        session.paused_at = None
        session.last_activity_at = time.time()
        await self._save(session, InterviewStatus.PAUSED)
        log_event("state_machine", "interview_resumed", session.session_id)
        return session

    async def join(self, session_id: str, owner_id: str) -> JoinResult:
        session = await self._load(session_id, owner_id)
        if session.status == InterviewStatus.ABANDONED:
            raise InterviewSessionError(SessionErrorKind.SESSION_ABANDONED)
        return JoinResult(session=session, terminal=session.status == InterviewStatus.COMPLETED)

    async def get_status(self, session_id: str, owner_id: str) -> dict:
        session = await self._load(session_id, owner_id)
        completed = session.status == InterviewStatus.COMPLETED
        return {
            "session_id": session.session_id,
            "status": session.status.value,
            "interview_type": session.interview_type,
            "personality": session.personality,
            "difficulty": {"initial": session.difficulty.initial, "current": session.difficulty.current},
            "progress": session.progress(),
            "duration_sec": session.duration_sec,
            "overall_scores": session.overall_scores if completed else None,
            "current_question": None if completed else question_view(session, session.pending_response),
            "started_at": session.started_at,
            "completed_at": session.completed_at,
        }

    def _summary_input(self, session: InterviewSession) -> dict:
        analytics = session.analytics or {}
        return {
            "interview_type": session.interview_type,
            "total_questions": session.total_questions,
            "duration_min": round(session.duration_sec / 60, 1),
            "overall_scores": session.overall_scores or {},
            "difficulty_progression": analytics.get("difficulty_progression") or [],
            "responses": [
                {"question": item.question.text, "score": item.overall, "strengths": item.strengths}
                for item in session.answered_responses
            ],
        }

    async def report(self, session_id: str, owner_id: str) -> dict:
        session = await self._load(session_id, owner_id)

        if session.status == InterviewStatus.COMPLETED and session.summary is None:
            try:
                summary = await self.interviewer.generate_summary(session.session_id, self._summary_input(session))
            except Exception as exc:
                logger.warning("interview summary unavailable | session_id=%s err=%s", session.session_id, exc)
                summary = None
            if isinstance(summary, dict) and summary.get("type") != "text":
                session.summary = summary
                try:
                    await self._save(session, InterviewStatus.COMPLETED)
                except InterviewSessionError:
                    logger.warning("interview summary not persisted | session_id=%s", session.session_id)

        overall = (session.overall_scores or {}).get("overall", 0)
        return {
            "session": {
                "session_id": session.session_id,
                "interview_type": session.interview_type,
                "sub_category": session.sub_category,
                "personality": session.personality,
                "target_company": session.target_company,
                "target_role": session.target_role,
                "status": session.status.value,
                "voice_enabled": session.voice_enabled,
                "started_at": session.started_at,
                "completed_at": session.completed_at,
                "duration_sec": session.duration_sec,
            },
            "difficulty": {
                "initial": session.difficulty.initial,
                "current": session.difficulty.current,
            },
            "progress": {
                "questions_answered": session.questions_answered,
                "total_questions": session.total_questions,
            },
            "overall_scores": session.overall_scores,
            "performance_level": performance_level(overall) if session.overall_scores else None,
            "analytics": session.analytics,
            "responses": [_response_report(item) for item in session.answered_responses],
            "summary": session.summary,
        }

    async def history(
        self,
        owner_id: str,
        limit: int = 10,
        status: str | None = None,
        interview_type: str | None = None,
    ) -> list[dict]:
        sessions = await self.repository.list_for_owner(owner_id, limit=limit, status=status, interview_type=interview_type)
        return [
            {
                "session_id": item.session_id,
                "interview_type": item.interview_type,
                "personality": item.personality,
                "difficulty": item.difficulty.initial,
                "status": item.status.value,
                "score": (item.overall_scores or {}).get("overall", 0),
                "questions_answered": item.questions_answered,
                "total_questions": item.total_questions,
                "started_at": item.started_at,
                "completed_at": item.completed_at,
                "duration_sec": item.duration_sec,
            }
            for item in sessions
        ]


def _response_report(record: ResponseRecord) -> dict[str, Any]:
    answer = record.answer.text if record.answer else ""
    voice = record.voice_analysis
    return {
        "question_index": record.index,
        "question": record.question.text,
        "question_type": record.question.question_type,
        "difficulty": record.question.difficulty,
        "answer": answer if len(answer) <= 200 else f"{answer[:200]}...",
        "skipped": bool(record.answer.skipped) if record.answer else False,
        "scores": record.scores.to_dict() if record.scores else None,
        "strengths": list(record.strengths),
        "weaknesses": list(record.weaknesses),
        "suggestions": list(record.suggestions),
        "voice_metrics": (
            {
                "confidence": voice.confidence,
                "clarity_score": voice.clarity_score,
                "hesitation_count": voice.hesitation_count,
            }
            if voice
            else None
        ),
    }
