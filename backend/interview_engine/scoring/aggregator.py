from __future__ import annotations

from dataclasses import dataclass
import math

from interview_engine.interview.models import SCORE_DIMENSIONS, DimensionScore, Evaluation, ResponseScores
from interview_engine.speech.voice_analysis import VoiceAnalysis


def round_half_up(value: float) -> int:
    return int(math.floor(float(value) + 0.5))


@dataclass(frozen=True)
class ScoringWeights:
    correctness: float = 0.30
    reasoning: float = 0.25
    communication: float = 0.20
    confidence: float = 0.15
    structure: float = 0.10

    def __post_init__(self):
        values = [getattr(self, name) for name in SCORE_DIMENSIONS]
        if any(value < 0 for value in values):
            raise ValueError("scoring weights must be non-negative")
        if abs(sum(values) - 1.0) > 1e-6:
            raise ValueError(f"scoring weights must sum to 1.0, got {sum(values):.4f}")

    def weight(self, name: str) -> float:
        return float(getattr(self, name))


DEFAULT_WEIGHTS = ScoringWeights()

PERFORMANCE_THRESHOLDS = (
    (85, "excellent"),
    (70, "good"),
    (55, "average"),
    (40, "needs-improvement"),
)


def _bounded(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def weighted_overall(scores: dict[str, float], weights: ScoringWeights = DEFAULT_WEIGHTS) -> int:
    total = sum(weights.weight(name) * _bounded(scores.get(name) or 0) for name in SCORE_DIMENSIONS)
    return round_half_up(total)


def communication_score(ai_score: int, voice: VoiceAnalysis | None) -> int:
    score = float(ai_score)
    if voice is None:
        return round_half_up(score)

    clarity = voice.clarity_score or 70
    score = float(round_half_up(score * 0.6 + clarity * 0.4))

    wpm = voice.words_per_minute or 140
    if 120 <= wpm <= 160:
        score = min(100.0, score + 5)
    elif wpm < 100 or wpm > 180:
        score = max(0.0, score - 10)
    return round_half_up(score)


def confidence_score(ai_score: int, voice: VoiceAnalysis | None) -> int:
    score = float(ai_score)
    if voice is None:
        return round_half_up(score)

    voice_confidence = voice.confidence or 70
    hesitation_penalty = min(30, voice.hesitation_count * 3)
    filler_penalty = min(20, voice.total_fillers * 2)
    pause_penalty = min(15, voice.long_pause_count * 5)
    voice_based = max(0, voice_confidence - hesitation_penalty - filler_penalty - pause_penalty)
    return round_half_up(score * 0.4 + voice_based * 0.6)


def communication_feedback(ai_feedback: str, voice: VoiceAnalysis | None) -> str:
    parts = [ai_feedback] if ai_feedback else []
    if voice is not None:
        wpm = voice.words_per_minute
        if wpm > 180:
            parts.append("Consider slowing down your pace for better clarity.")
        elif 0 < wpm < 100:
            parts.append("Try to maintain a slightly faster speaking pace.")
        elif 120 <= wpm <= 160:
            parts.append("Good speaking pace maintained.")

        if voice.total_fillers > 5:
            top = ", ".join(item.word for item in voice.filler_words[:3])
            parts.append(f"Reduce filler words like: {top}")
    return " ".join(parts)


def confidence_feedback(ai_feedback: str, voice: VoiceAnalysis | None) -> str:
    if voice is None:
        return ai_feedback or "Voice analysis not available for detailed feedback."

    parts = [ai_feedback] if ai_feedback else []
    if voice.hesitation_count > 5:
        parts.append("Noticeable hesitation detected. Practice can help build confidence.")
    elif voice.hesitation_count <= 2:
        parts.append("Demonstrated good confidence with minimal hesitation.")

    patterns = voice.speech_patterns
    if patterns.energy == "low":
        parts.append("Try to inject more energy into your responses.")
    elif patterns.energy == "high":
        parts.append("Good energy level throughout the response.")
    if patterns.consistency == "variable":
        parts.append("Work on maintaining a more consistent delivery.")

    return " ".join(parts) or "Good overall confidence demonstrated."


def presence_score(eye_contact: float | None, posture: float | None) -> DimensionScore:
    if eye_contact is None or posture is None:
        return DimensionScore(score=0, feedback="No camera data available")

    score = int(math.floor((_bounded(eye_contact) + _bounded(posture)) / 2))
    if score > 80:
        feedback = "Excellent presence and eye contact."
    elif score > 60:
        feedback = "Good presence, but try to maintain more consistent eye contact."
    else:
        feedback = "Try to maintain better posture and look directly into the camera more often."
    return DimensionScore(score=score, feedback=feedback)


def compute_response_scores(
    evaluation: Evaluation,
    voice: VoiceAnalysis | None = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> ResponseScores:
    """Fuse an AI evaluation with voice metrics into per-dimension scores.

    Correctness, reasoning and structure are taken from the evaluation as-is.
    Communication and confidence are blended with the voice signal when one is
    present. Presence is never set here; callers append it afterwards.
    """
    communication = evaluation.communication
    confidence = evaluation.confidence
    scores = ResponseScores(
        correctness=DimensionScore(evaluation.correctness.score, evaluation.correctness.feedback),
        reasoning=DimensionScore(evaluation.reasoning.score, evaluation.reasoning.feedback),
        communication=DimensionScore(
            communication_score(communication.score, voice),
            communication_feedback(communication.feedback, voice),
        ),
        confidence=DimensionScore(
            confidence_score(confidence.score, voice),
            confidence_feedback(confidence.feedback, voice),
        ),
        structure=DimensionScore(evaluation.structure.score, evaluation.structure.feedback),
    )

    if evaluation.is_fallback:
        scores.overall = int(evaluation.overall)
    else:
        scores.overall = weighted_overall({name: scores.dimension(name).score for name in SCORE_DIMENSIONS}, weights)
    return scores


def zero_scores(feedback: str = "No answer provided") -> ResponseScores:
    return ResponseScores(
        correctness=DimensionScore(0, feedback),
        reasoning=DimensionScore(0, feedback),
        communication=DimensionScore(0, feedback),
        confidence=DimensionScore(0, feedback),
        structure=DimensionScore(0, feedback),
        overall=0,
    )


def performance_level(score: float) -> str:
    for threshold, label in PERFORMANCE_THRESHOLDS:
        if score >= threshold:
            return label
    return "poor"
