from interview_engine.analytics.session_analytics_builder import (
    aggregate_scores,
    build_session_analytics,
    category_performance,
    performance_trend,
    practice_recommendations,
    strengths_and_weaknesses,
)
from interview_engine.interview.models import (
    Answer,
    DifficultyState,
    DimensionScore,
    InterviewSession,
    Question,
    ResponseRecord,
    ResponseScores,
)


def _record(index: int, overall: int, dims: dict | None = None, category: str | None = None, answered: bool = True) -> ResponseRecord:
    dims = dims or {}
    record = ResponseRecord(
        index=index,
        question=Question(text=f"Question {index}", difficulty="medium", category=category),
        started_at=100.0 + index * 60,
    )
    if answered:
        record.answer = Answer(text="answer", duration_sec=30.0)
        record.scores = ResponseScores(
            correctness=DimensionScore(dims.get("correctness", overall)),
            reasoning=DimensionScore(dims.get("reasoning", overall)),
            communication=DimensionScore(dims.get("communication", overall)),
            confidence=DimensionScore(dims.get("confidence", overall)),
            structure=DimensionScore(dims.get("structure", overall)),
            overall=overall,
        )
        record.completed_at = record.started_at + 45
    return record


def test_aggregate_scores_averages_answered_responses_only():
    responses = [_record(0, 80), _record(1, 61), _record(2, 0, answered=False)]

    result = aggregate_scores(responses)

    assert result["overall"] == 71
    assert result["correctness"] == 71
    assert "presence" not in result


def test_aggregate_scores_includes_presence_when_tracked():
    record = _record(0, 80)
    record.scores.presence = DimensionScore(75, "Good presence")

    assert aggregate_scores([record])["presence"] == 75


def test_aggregate_scores_empty_session():
    assert aggregate_scores([])["overall"] == 0


def test_performance_trend():
    assert performance_trend([80, 90]) == "not-enough-data"
    assert performance_trend([50, 50, 70, 75]) == "improving"
    assert performance_trend([90, 60, 60]) == "declining"
    assert performance_trend([80, 80, 60]) == "stable"


def test_strengths_and_weaknesses_from_dimension_averages_and_topics():
    record = _record(0, 70, {"correctness": 85, "structure": 50})
    record.strengths = ["Clear examples"]
    record.weaknesses = ["Skipped edge cases"]

    strengths, weaknesses = strengths_and_weaknesses([record], aggregate_scores([record]))

    assert strengths == ["Strong technical accuracy", "Clear examples"]
    assert weaknesses == ["Response organization needs improvement", "Skipped edge cases"]


def test_practice_recommendations_match_weakness_keywords():
    recommendations = practice_recommendations(
        ["Logical reasoning could be stronger", "Technical accuracy needs improvement", "Reasoning again"],
        "system-design",
    )

    topics = [item["topic"] for item in recommendations]
    assert topics == ["Logical Reasoning", "Technical Fundamentals"]
    assert recommendations[1]["suggested_questions"][0] == "Design a simple rate limiter"


def test_category_performance_groups_by_category():
    rows = category_performance([_record(0, 80, category="arrays"), _record(1, 60, category="graphs"), _record(2, 70)], "dsa")

    assert rows[0] == {"category": "arrays", "average_score": 80, "question_count": 1}
    assert {row["category"] for row in rows} == {"arrays", "graphs", "dsa"}


def test_build_session_analytics_shape():
    session = InterviewSession(
        owner_id="u1",
        interview_type="technical",
        personality="professional",
        difficulty=DifficultyState(),
        total_questions=3,
        responses=[_record(0, 60), _record(1, 70), _record(2, 90)],
        questions_answered=3,
    )

    analytics = build_session_analytics(session)

    assert analytics["total_duration_sec"] == 135
    assert analytics["average_response_time_sec"] == 45
    assert analytics["performance_trend"] == "improving"
    assert analytics["overall_scores"]["overall"] == 73
    assert len(analytics["question_breakdown"]) == 3
    assert analytics["question_breakdown"][0]["question_index"] == 1
    assert [row["question_index"] for row in analytics["difficulty_progression"]] == [0, 1, 2]
    assert analytics["difficulty_adjustments"] == []
