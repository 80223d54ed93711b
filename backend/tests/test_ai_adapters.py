from interview_engine.interview.adapters import follow_up_text, normalize_evaluation, normalize_question
from interview_engine.interview.fallback_content import (
    QUESTION_POOLS,
    SKIPPED_ANSWER_MARKER,
    fallback_opening_question,
    fallback_topic_question,
    is_skipped_answer,
    skipped_evaluation,
)


def test_normalize_question_camel_case_shape():
    question = normalize_question(
        {"questionText": "Reverse a linked list", "questionType": "coding", "expectedTopics": ["pointers"]},
        "hard",
        "fallback",
    )

    assert question.text == "Reverse a linked list"
    assert question.question_type == "coding"
    assert question.difficulty == "hard"
    assert question.expected_topics == ["pointers"]


def test_normalize_question_content_shape_with_unknown_type():
    question = normalize_question({"content": "What is a heap?", "type": "question"}, "medium", "fallback")

    assert question.text == "What is a heap?"
    assert question.question_type == "open-ended"


def test_normalize_question_text_reply_and_empty_payload():
    assert normalize_question({"content": "Tell me more.", "type": "text"}, "easy", "x").text == "Tell me more."
    assert normalize_question({}, "easy", "Tell me about yourself.").text == "Tell me about yourself."
    assert normalize_question(["not", "a", "dict"], "easy", "default").text == "default"


def test_normalize_evaluation_nested_scores():
    evaluation = normalize_evaluation(
        {
            "scores": {"correctness": {"score": 88, "feedback": "Accurate"}, "reasoning": {"score": 150}},
            "overall": 79.6,
            "keyTopicsMissed": ["complexity"],
            "shouldGenerateFollowUp": "true",
            "adjustDifficulty": "INCREASE",
        }
    )

    assert evaluation.correctness.score == 88
    assert evaluation.correctness.feedback == "Accurate"
    assert evaluation.reasoning.score == 100
    assert evaluation.communication.score == 0
    assert evaluation.overall == 80
    assert evaluation.topics_missed == ["complexity"]
    assert evaluation.should_follow_up is True
    assert evaluation.adjust_difficulty == "increase"


def test_normalize_evaluation_flat_scores_and_garbage():
    evaluation = normalize_evaluation({"correctness": "75", "structure": "n/a", "adjustDifficulty": "sideways"})

    assert evaluation.correctness.score == 75
    assert evaluation.structure.score == 0
    assert evaluation.adjust_difficulty == "maintain"
    assert normalize_evaluation(None).overall == 0


def test_follow_up_text():
    assert follow_up_text({"question": "Why?"}) == "Why?"
    assert follow_up_text({"content": "How so?", "type": "text"}) == "How so?"
    assert follow_up_text(None) == ""


def test_fallback_opening_question_by_type():
    technical = fallback_opening_question("technical", "easy")
    assert technical.text.startswith("Can you explain the difference between a stack and a queue?")
    assert technical.question_type == "technical"
    assert technical.difficulty == "easy"

    assert fallback_opening_question("unknown", "medium").text.startswith("Tell me about yourself.")


def test_fallback_topic_question_cycles_pool():
    pool = QUESTION_POOLS["behavioral"]
    assert fallback_topic_question("behavioral", 1, "medium").text == pool[1]
    assert fallback_topic_question("behavioral", len(pool) + 2, "medium").text == pool[2]
    assert fallback_topic_question("technical", 0, "medium").question_type == "technical"


def test_skipped_answers():
    assert is_skipped_answer(SKIPPED_ANSWER_MARKER)
    assert is_skipped_answer("   ")
    assert not is_skipped_answer("I would use a hash map")
    assert skipped_evaluation(["a", "b"]).topics_missed == ["a", "b"]
