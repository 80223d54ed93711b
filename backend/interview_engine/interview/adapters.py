from __future__ import annotations

from typing import Any

from interview_engine.interview.models import (
    QUESTION_TYPES,
    SCORE_DIMENSIONS,
    DimensionScore,
    Evaluation,
    Question,
)

_QUESTION_TEXT_KEYS = ("questionText", "question_text", "content", "question", "text")
_QUESTION_TYPE_KEYS = ("questionType", "question_type", "type")


def _first_text(data: dict, keys: tuple[str, ...]) -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item).strip() for item in value if str(item or "").strip()]


def _clamp_score(value: Any) -> int:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0
    return int(max(0.0, min(100.0, round(score))))


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def normalize_question(payload: Any, difficulty: str, default_text: str) -> Question:
    """Map any accepted AI question shape onto ``Question``."""
    data = payload if isinstance(payload, dict) else {}
    text = _first_text(data, _QUESTION_TEXT_KEYS) or default_text
    question_type = _first_text(data, _QUESTION_TYPE_KEYS)
    if question_type not in QUESTION_TYPES:
        question_type = "open-ended"

    return Question(
        text=text,
        question_type=question_type,
        difficulty=difficulty,
        expected_topics=_str_list(data.get("expectedTopics", data.get("expected_topics"))),
        is_follow_up=question_type == "follow-up",
        category=str(data.get("category")).strip() if data.get("category") else None,
    )


def _dimension(data: dict, name: str) -> DimensionScore:
    scores = data.get("scores")
    raw = scores.get(name) if isinstance(scores, dict) else None
    if raw is None:
        raw = data.get(name)

    if isinstance(raw, dict):
        return DimensionScore(score=_clamp_score(raw.get("score")), feedback=str(raw.get("feedback") or ""))
    if raw is None:
        return DimensionScore()
    return DimensionScore(score=_clamp_score(raw))


def normalize_evaluation(payload: Any) -> Evaluation:
    """Map an AI evaluation (nested ``scores.<dim>.score`` or flat numbers) onto ``Evaluation``.

    Missing sub-scores stay at 0 so a broken evaluation drags the overall down.
    """
    data = payload if isinstance(payload, dict) else {}
    dimensions = {name: _dimension(data, name) for name in SCORE_DIMENSIONS}
    follow_up = data.get("followUpQuestion", data.get("follow_up_question"))
    adjust = str(data.get("adjustDifficulty", data.get("adjust_difficulty")) or "maintain").strip().lower()

    return Evaluation(
        **dimensions,
        overall=_clamp_score(data.get("overall")),
        strengths=_str_list(data.get("strengths")),
        weaknesses=_str_list(data.get("weaknesses")),
        suggestions=_str_list(data.get("suggestions")),
        topics_covered=_str_list(data.get("keyTopicsCovered", data.get("topics_covered"))),
        topics_missed=_str_list(data.get("keyTopicsMissed", data.get("topics_missed"))),
        should_follow_up=_as_bool(data.get("shouldGenerateFollowUp", data.get("should_follow_up"))),
        follow_up_question=str(follow_up).strip() if isinstance(follow_up, str) and follow_up.strip() else None,
        adjust_difficulty=adjust if adjust in {"increase", "decrease", "maintain"} else "maintain",
    )


def follow_up_text(payload: Any) -> str:
    data = payload if isinstance(payload, dict) else {}
    return _first_text(data, ("question", "questionText", "question_text", "content"))
