from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
import time
import uuid

from interview_engine.speech.voice_analysis import VoiceAnalysis


INTERVIEW_TYPES = ("technical", "behavioral", "hr", "system-design")
PERSONALITIES = ("strict", "friendly", "professional")
QUESTION_TYPES = ("open-ended", "technical", "coding", "scenario", "follow-up")
SCORE_DIMENSIONS = ("correctness", "reasoning", "communication", "confidence", "structure")


class InterviewStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


def _str_list(values) -> list[str]:
    if not isinstance(values, (list, tuple)):
        return []
    return [str(item) for item in values if str(item or "").strip()]


@dataclass
class InterviewContext:
    interview_type: str = "technical"
    personality: str = "professional"
    difficulty: str = "medium"
    target_company: str | None = None
    target_role: str | None = None
    experience_years: float = 0.0
    skills: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "InterviewContext":
        data = dict(data or {})
        return cls(
            interview_type=str(data.get("interview_type") or "technical"),
            personality=str(data.get("personality") or "professional"),
            difficulty=str(data.get("difficulty") or "medium"),
            target_company=data.get("target_company") or None,
            target_role=data.get("target_role") or None,
            experience_years=float(data.get("experience_years") or 0.0),
            skills=_str_list(data.get("skills")),
        )


@dataclass
class Question:
    text: str
    question_type: str = "open-ended"
    difficulty: str = "medium"
    expected_topics: list[str] = field(default_factory=list)
    time_allowed_sec: int = 120
    is_follow_up: bool = False
    category: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        return cls(
            text=str(data.get("text") or ""),
            question_type=str(data.get("question_type") or "open-ended"),
            difficulty=str(data.get("difficulty") or "medium"),
            expected_topics=_str_list(data.get("expected_topics")),
            time_allowed_sec=int(data.get("time_allowed_sec") or 120),
            is_follow_up=bool(data.get("is_follow_up")),
            category=data.get("category") or None,
        )


@dataclass
class Answer:
    text: str = ""
    duration_sec: float = 0.0
    skipped: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "Answer":
        return cls(
            text=str(data.get("text") or ""),
            duration_sec=float(data.get("duration_sec") or 0.0),
            skipped=bool(data.get("skipped")),
        )


@dataclass
class DimensionScore:
    score: int = 0
    feedback: str = ""
    max_score: int = 100

    @classmethod
    def from_dict(cls, data: dict | None) -> "DimensionScore":
        data = dict(data or {})
        return cls(
            score=int(data.get("score") or 0),
            feedback=str(data.get("feedback") or ""),
            max_score=int(data.get("max_score") or 100),
        )


@dataclass
class ResponseScores:
    correctness: DimensionScore = field(default_factory=DimensionScore)
    reasoning: DimensionScore = field(default_factory=DimensionScore)
    communication: DimensionScore = field(default_factory=DimensionScore)
    confidence: DimensionScore = field(default_factory=DimensionScore)
    structure: DimensionScore = field(default_factory=DimensionScore)
    overall: int = 0
    presence: DimensionScore | None = None

    def dimension(self, name: str) -> DimensionScore:
        return getattr(self, name)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "ResponseScores":
        data = dict(data or {})
        presence = data.get("presence")
        return cls(
            correctness=DimensionScore.from_dict(data.get("correctness")),
            reasoning=DimensionScore.from_dict(data.get("reasoning")),
            communication=DimensionScore.from_dict(data.get("communication")),
            confidence=DimensionScore.from_dict(data.get("confidence")),
            structure=DimensionScore.from_dict(data.get("structure")),
            overall=int(data.get("overall") or 0),
            presence=DimensionScore.from_dict(presence) if isinstance(presence, dict) else None,
        )


@dataclass
class Evaluation:
    """Normalized AI evaluation of one answer."""

    correctness: DimensionScore = field(default_factory=DimensionScore)
    reasoning: DimensionScore = field(default_factory=DimensionScore)
    communication: DimensionScore = field(default_factory=DimensionScore)
    confidence: DimensionScore = field(default_factory=DimensionScore)
    structure: DimensionScore = field(default_factory=DimensionScore)
    overall: int = 0
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    topics_covered: list[str] = field(default_factory=list)
    topics_missed: list[str] = field(default_factory=list)
    should_follow_up: bool = False
    follow_up_question: str | None = None
    adjust_difficulty: str = "maintain"
    is_fallback: bool = False

    def dimension(self, name: str) -> DimensionScore:
        return getattr(self, name)


@dataclass
class ResponseRecord:
    index: int
    question: Question
    answer: Answer | None = None
    voice_analysis: VoiceAnalysis | None = None
    scores: ResponseScores | None = None
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    topics_covered: list[str] = field(default_factory=list)
    topics_missed: list[str] = field(default_factory=list)
    follow_up: Question | None = None
    started_at: float = field(default_factory=time.time)
    completed_at: float | None = None

    @property
    def is_answered(self) -> bool:
        return self.completed_at is not None

    @property
    def overall(self) -> int:
        return int(self.scores.overall) if self.scores else 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ResponseRecord":
        answer = data.get("answer")
        voice = data.get("voice_analysis")
        scores = data.get("scores")
        follow_up = data.get("follow_up")
        return cls(
            index=int(data.get("index") or 0),
            question=Question.from_dict(dict(data.get("question") or {})),
            answer=Answer.from_dict(answer) if isinstance(answer, dict) else None,
            voice_analysis=VoiceAnalysis.from_dict(voice) if isinstance(voice, dict) else None,
            scores=ResponseScores.from_dict(scores) if isinstance(scores, dict) else None,
            strengths=_str_list(data.get("strengths")),
            weaknesses=_str_list(data.get("weaknesses")),
            suggestions=_str_list(data.get("suggestions")),
            topics_covered=_str_list(data.get("topics_covered")),
            topics_missed=_str_list(data.get("topics_missed")),
            follow_up=Question.from_dict(follow_up) if isinstance(follow_up, dict) else None,
            started_at=float(data.get("started_at") or 0.0),
            completed_at=float(data["completed_at"]) if data.get("completed_at") is not None else None,
        )


@dataclass
class DifficultyAdjustment:
    from_level: str
    to_level: str
    direction: str
    reason: str
    question_index: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class DifficultyState:
    initial: str = "medium"
    current: str = "medium"
    adjustments: list[DifficultyAdjustment] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict | None) -> "DifficultyState":
        data = dict(data or {})
        return cls(
            initial=str(data.get("initial") or "medium"),
            current=str(data.get("current") or "medium"),
            adjustments=[
                DifficultyAdjustment(
                    from_level=str(item.get("from_level") or ""),
                    to_level=str(item.get("to_level") or ""),
                    direction=str(item.get("direction") or ""),
                    reason=str(item.get("reason") or ""),
                    question_index=int(item.get("question_index") or 0),
                    timestamp=float(item.get("timestamp") or 0.0),
                )
                for item in data.get("adjustments") or []
                if isinstance(item, dict)
            ],
        )


@dataclass
class InterviewSession:
    owner_id: str
    interview_type: str
    personality: str
    difficulty: DifficultyState
    total_questions: int
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    sub_category: str | None = None
    target_company: str | None = None
    target_role: str | None = None
    voice_enabled: bool = True
    candidate_experience_years: float = 0.0
    candidate_skills: list[str] = field(default_factory=list)
    responses: list[ResponseRecord] = field(default_factory=list)
    questions_answered: int = 0
    current_question_index: int = 0
    status: InterviewStatus = InterviewStatus.IN_PROGRESS
    started_at: float = field(default_factory=time.time)
    paused_at: float | None = None
    completed_at: float | None = None
    last_activity_at: float = field(default_factory=time.time)
    overall_scores: dict | None = None
    analytics: dict | None = None
    summary: dict | None = None

    @property
    def pending_response(self) -> ResponseRecord | None:
        if 0 <= self.current_question_index < len(self.responses):
            return self.responses[self.current_question_index]
        return None

    @property
    def answered_responses(self) -> list[ResponseRecord]:
        return [item for item in self.responses if item.is_answered]

    @property
    def duration_sec(self) -> int:
        end = self.completed_at or self.last_activity_at or self.started_at
        return max(0, int(round(float(end) - float(self.started_at))))

    def context(self) -> InterviewContext:
        return InterviewContext(
            interview_type=self.interview_type,
            personality=self.personality,
            difficulty=self.difficulty.current,
            target_company=self.target_company,
            target_role=self.target_role,
            experience_years=self.candidate_experience_years,
            skills=list(self.candidate_skills),
        )

    def progress(self) -> dict:
        total = max(1, int(self.total_questions))
        return {
            "answered": self.questions_answered,
            "current": min(self.current_question_index + 1, self.total_questions),
            "total": self.total_questions,
            "percentage": int(round((self.questions_answered / total) * 100)),
        }

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "InterviewSession":
        return cls(
            session_id=str(data.get("session_id") or ""),
            owner_id=str(data.get("owner_id") or ""),
            interview_type=str(data.get("interview_type") or "technical"),
            personality=str(data.get("personality") or "professional"),
            difficulty=DifficultyState.from_dict(data.get("difficulty")),
            total_questions=int(data.get("total_questions") or 1),
            sub_category=data.get("sub_category") or None,
            target_company=data.get("target_company") or None,
            target_role=data.get("target_role") or None,
            voice_enabled=bool(data.get("voice_enabled", True)),
            candidate_experience_years=float(data.get("candidate_experience_years") or 0.0),
            candidate_skills=_str_list(data.get("candidate_skills")),
            responses=[ResponseRecord.from_dict(item) for item in data.get("responses") or [] if isinstance(item, dict)],
            questions_answered=int(data.get("questions_answered") or 0),
            current_question_index=int(data.get("current_question_index") or 0),
            status=InterviewStatus(str(data.get("status") or InterviewStatus.IN_PROGRESS.value)),
            started_at=float(data.get("started_at") or 0.0),
            paused_at=float(data["paused_at"]) if data.get("paused_at") is not None else None,
            completed_at=float(data["completed_at"]) if data.get("completed_at") is not None else None,
            last_activity_at=float(data.get("last_activity_at") or 0.0),
            overall_scores=data.get("overall_scores") if isinstance(data.get("overall_scores"), dict) else None,
            analytics=data.get("analytics") if isinstance(data.get("analytics"), dict) else None,
            summary=data.get("summary") if isinstance(data.get("summary"), dict) else None,
        )
