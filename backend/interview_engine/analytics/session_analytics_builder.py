from collections import Counter
import time
from typing import Any

from interview_engine.interview.models import SCORE_DIMENSIONS, InterviewSession, ResponseRecord
from interview_engine.scoring.aggregator import round_half_up


STRENGTH_LABELS = {
    "correctness": "Strong technical accuracy",
    "reasoning": "Excellent logical thinking",
    "communication": "Clear and articulate communication",
    "structure": "Well-organized responses",
    "confidence": "Confident delivery",
}

WEAKNESS_LABELS = {
    "correctness": "Technical accuracy needs improvement",
    "reasoning": "Logical reasoning could be stronger",
    "communication": "Communication clarity needs work",
    "structure": "Response organization needs improvement",
    "confidence": "Confidence building needed",
}

TECHNICAL_PRACTICE_QUESTIONS = {
    "technical": [
        "Explain the difference between an array and a linked list",
        "What is the time complexity of common sorting algorithms?",
        "How would you optimize a slow database query?",
    ],
    "system-design": [
        "Design a simple rate limiter",
        "How would you design a cache system?",
        "Explain how you would scale a web application",
    ],
    "behavioral": [
        "Tell me about a challenging project you completed",
        "Describe a time when you had to learn something quickly",
        "How do you handle disagreements with teammates?",
    ],
    "hr": [
        "Why are you interested in this role?",
        "Where do you see yourself in 5 years?",
        "What are your salary expectations?",
    ],
}

# (keywords, topic, priority, suggested questions); None means "by interview type"
_RECOMMENDATION_RULES: list[tuple[tuple[str, ...], str, str, list[str] | None]] = [
    (
        ("reasoning", "logic"),
        "Logical Reasoning",
        "high",
        [
            "Walk me through your approach to solving a complex problem",
            "How do you break down a large task into manageable pieces?",
            "Explain the trade-offs between different approaches to a problem",
        ],
    ),
    (
        ("communication", "clarity"),
        "Communication Skills",
        "high",
        [
            "Explain a technical concept to a non-technical person",
            "Walk me through a project you worked on",
            "Describe how you would present a proposal to stakeholders",
        ],
    ),
    (
        ("confidence",),
        "Building Confidence",
        "medium",
        [
            "Practice answering questions without hesitation",
            "Record yourself and review for filler words",
            "Practice with a timer to build comfort with time pressure",
        ],
    ),
    (("technical", "accuracy"), "Technical Fundamentals", "high", None),
    (
        ("structure", "organiz"),
        "Response Structure",
        "medium",
        [
            "Use the STAR method for behavioral questions",
            "Practice outlining your answer before speaking",
            "Structure technical answers with problem, approach, solution",
        ],
    ),
]

MAX_AREAS = 5
MAX_TOPIC_AREAS = 3
MAX_RECOMMENDATIONS = 5


def _avg(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _response_seconds(record: ResponseRecord) -> float:
    if record.completed_at is not None and record.started_at:
        return max(0.0, float(record.completed_at) - float(record.started_at))
    if record.answer is not None:
        return float(record.answer.duration_sec or 0.0)
    return 0.0


def aggregate_scores(responses: list[ResponseRecord]) -> dict[str, int]:
    """Per-dimension means (half-up) over answered responses only."""
    answered = [item for item in responses if item.is_answered and item.scores is not None]
    result = {name: 0 for name in SCORE_DIMENSIONS}
    result["overall"] = 0
    if not answered:
        return result

    for name in SCORE_DIMENSIONS:
        result[name] = round_half_up(_avg([float(item.scores.dimension(name).score) for item in answered]))
    result["overall"] = round_half_up(_avg([float(item.scores.overall) for item in answered]))

    presence = [float(item.scores.presence.score) for item in answered if item.scores.presence is not None]
    if presence:
        result["presence"] = round_half_up(_avg(presence))
    return result


def difficulty_progression(responses: list[ResponseRecord]) -> list[dict[str, Any]]:
    return [
        {
            "question_index": idx,
            "difficulty": item.question.difficulty or "medium",
            "score": item.overall,
        }
        for idx, item in enumerate(responses)
        if item.is_answered
    ]


def performance_trend(scores: list[float]) -> str:
    if len(scores) < 3:
        return "not-enough-data"

    midpoint = len(scores) // 2
    difference = _avg(scores[midpoint:]) - _avg(scores[:midpoint])
    if difference > 10:
        return "improving"
    if difference < -10:
        return "declining"
    return "stable"


def _ranked_topics(values: list[str], limit: int) -> list[str]:
    counts = Counter(item.strip() for item in values if str(item or "").strip())
    return [topic for topic, _ in counts.most_common(limit)]


def _dedupe(values: list[str], limit: int) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen[:limit]


def strengths_and_weaknesses(responses: list[ResponseRecord], averages: dict[str, int]) -> tuple[list[str], list[str]]:
    strengths: list[str] = []
    weaknesses: list[str] = []
    for name in SCORE_DIMENSIONS:
        score = averages.get(name, 0)
        if score >= 80:
            strengths.append(STRENGTH_LABELS[name])
        elif score < 60:
            weaknesses.append(WEAKNESS_LABELS[name])

    answered = [item for item in responses if item.is_answered]
    strengths.extend(_ranked_topics([s for item in answered for s in item.strengths], MAX_TOPIC_AREAS))
    weaknesses.extend(_ranked_topics([w for item in answered for w in item.weaknesses], MAX_TOPIC_AREAS))
    return _dedupe(strengths, MAX_AREAS), _dedupe(weaknesses, MAX_AREAS)


def question_breakdown(responses: list[ResponseRecord]) -> list[dict[str, Any]]:
    rows = []
    for idx, item in enumerate(responses, start=1):
        if not item.is_answered:
            continue
        text = item.question.text
        rows.append(
            {
                "question_index": idx,
                "question": text if len(text) <= 100 else f"{text[:100]}...",
                "question_type": item.question.question_type,
                "difficulty": item.question.difficulty,
                "score": item.overall,
                "strengths": item.strengths[:2],
                "weaknesses": item.weaknesses[:2],
                "time_spent_sec": round(_response_seconds(item), 2),
            }
        )
    return rows


def category_performance(responses: list[ResponseRecord], default_category: str | None = None) -> list[dict[str, Any]]:
    buckets: dict[str, list[float]] = {}
    for item in responses:
        if not item.is_answered:
            continue
        category = item.question.category or default_category or "general"
        buckets.setdefault(category, []).append(float(item.overall))

    rows = [
        {"category": category, "average_score": round_half_up(_avg(values)), "question_count": len(values)}
        for category, values in buckets.items()
    ]
    rows.sort(key=lambda row: row["average_score"], reverse=True)
    return rows


def practice_recommendations(weaknesses: list[str], interview_type: str) -> list[dict[str, Any]]:
    recommendations: list[dict[str, Any]] = []
    topics: set[str] = set()
    for weakness in weaknesses:
        lowered = str(weakness or "").lower()
        for keywords, topic, priority, questions in _RECOMMENDATION_RULES:
            if topic in topics or not any(keyword in lowered for keyword in keywords):
                continue
            topics.add(topic)
            recommendations.append(
                {
                    "topic": topic,
                    "priority": priority,
                    "suggested_questions": list(
                        questions or TECHNICAL_PRACTICE_QUESTIONS.get(interview_type, TECHNICAL_PRACTICE_QUESTIONS["technical"])
                    ),
                }
            )
    return recommendations[:MAX_RECOMMENDATIONS]


def build_session_analytics(session: InterviewSession) -> dict:
    responses = list(session.responses)
    answered = session.answered_responses
    averages = aggregate_scores(responses)
    strengths, weaknesses = strengths_and_weaknesses(responses, averages)

    total_duration = sum(_response_seconds(item) for item in answered)
    average_response = round_half_up(total_duration / len(answered)) if answered else 0

    return {
        "total_duration_sec": round_half_up(total_duration),
        "average_response_time_sec": average_response,
        "difficulty_progression": difficulty_progression(responses),
        "strength_areas": strengths,
        "weakness_areas": weaknesses,
        "performance_trend": performance_trend([float(item.overall) for item in answered]),
        "overall_scores": averages,
        "question_breakdown": question_breakdown(responses),
        "category_performance": category_performance(responses, session.sub_category),
        "practice_recommendations": practice_recommendations(weaknesses, session.interview_type),
        "difficulty_adjustments": [
            {
                "from": item.from_level,
                "to": item.to_level,
                "direction": item.direction,
                "reason": item.reason,
                "question_index": item.question_index,
                "timestamp": item.timestamp,
            }
            for item in session.difficulty.adjustments
        ],
        "generated_at": time.time(),
    }
