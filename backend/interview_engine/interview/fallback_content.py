from __future__ import annotations

from interview_engine.interview.models import DimensionScore, Evaluation, Question

SKIPPED_ANSWER_MARKER = "[TIME_EXPIRED_NO_ANSWER]"
DEFAULT_OPENING_TEXT = "Tell me about yourself."
DEFAULT_NEXT_TEXT = "Tell me more about your experience."

OPENING_QUESTIONS = {
    "technical": {
        "text": "Can you explain the difference between a stack and a queue? When would you use each data structure?",
        "question_type": "technical",
        "expected_topics": ["data structures", "stack", "queue", "LIFO", "FIFO", "use cases"],
    },
    "behavioral": {
        "text": (
            "Tell me about a time when you had to work with a difficult team member. "
            "How did you handle the situation and what was the outcome?"
        ),
        "question_type": "open-ended",
        "expected_topics": ["conflict resolution", "teamwork", "communication", "outcome"],
    },
    "hr": {
        "text": "Tell me about yourself. Walk me through your background and what interests you about this role.",
        "question_type": "open-ended",
        "expected_topics": ["background", "motivation", "career goals", "relevant experience"],
    },
    "system-design": {
        "text": (
            "How would you design a URL shortening service like bit.ly? "
            "Consider the key components, data storage, and scalability."
        ),
        "question_type": "scenario",
        "expected_topics": ["system architecture", "database design", "hashing", "scalability", "API design"],
    },
}

QUESTION_POOLS = {
    "technical": [
        "Explain the concept of time and space complexity. How do you analyze an algorithm's efficiency?",
        "What are the key differences between SQL and NoSQL databases? When would you choose one over the other?",
        "Explain how HTTP works. What happens when you type a URL into a browser?",
        "What is the difference between processes and threads? When would you use each?",
        "Explain what a closure is. Provide an example of where it is useful.",
    ],
    "behavioral": [
        "Describe a situation where you had to learn a new technology quickly. How did you approach it?",
        "Tell me about a project you are most proud of. What made it special?",
        "How do you handle tight deadlines and competing priorities?",
        "Describe a time you received critical feedback. How did you respond?",
        "Tell me about a time you disagreed with your manager. What happened?",
    ],
    "hr": [
        "Where do you see yourself in five years?",
        "What motivates you in your work?",
        "How do you handle feedback from your manager or peers?",
        "Why are you interested in this role?",
        "What is your greatest professional strength?",
    ],
    "system-design": [
        "How would you design a chat application like WhatsApp?",
        "Design a caching system. What strategies would you use?",
        "How would you design a notification service for a large-scale application?",
        "Design a rate limiter. How would you handle distributed rate limiting?",
        "How would you design an online file storage service like Google Drive?",
    ],
}


def fallback_opening_question(interview_type: str, difficulty: str) -> Question:
    entry = OPENING_QUESTIONS.get(interview_type) or OPENING_QUESTIONS["hr"]
    return Question(
        text=entry["text"],
        question_type=entry["question_type"],
        difficulty=difficulty,
        expected_topics=list(entry["expected_topics"]),
    )


def fallback_topic_question(interview_type: str, question_index: int, difficulty: str) -> Question:
    pool = QUESTION_POOLS.get(interview_type) or QUESTION_POOLS["hr"]
    return Question(
        text=pool[max(0, int(question_index)) % len(pool)],
        question_type="technical" if interview_type == "technical" else "open-ended",
        difficulty=difficulty,
    )


def fallback_evaluation() -> Evaluation:
    return Evaluation(
        correctness=DimensionScore(65, "Answer evaluation is temporarily unavailable. Default score assigned."),
        reasoning=DimensionScore(65, "Reasoning evaluation pending."),
        communication=DimensionScore(70, "Communication evaluation pending."),
        structure=DimensionScore(65, "Structure evaluation pending."),
        confidence=DimensionScore(70, "Confidence evaluation pending."),
        overall=65,
        strengths=["Answer was provided"],
        weaknesses=["AI evaluation was temporarily unavailable"],
        suggestions=["Try again when AI service is available for detailed feedback"],
        should_follow_up=False,
        adjust_difficulty="maintain",
        is_fallback=True,
    )


def skipped_evaluation(expected_topics: list[str] | None = None) -> Evaluation:
    return Evaluation(
        weaknesses=["No answer was provided for this question."],
        suggestions=["Make sure to provide an answer within the time limit."],
        topics_missed=list(expected_topics or []),
    )


def is_skipped_answer(answer_text: str | None) -> bool:
    text = str(answer_text or "").strip()
    return not text or text == SKIPPED_ANSWER_MARKER
