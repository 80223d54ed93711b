import base64
import json
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from interview_engine.system_metrics import reset_metrics  # noqa: E402


QUESTION_REPLY = {
    "type": "question",
    "content": "How would you detect a cycle in a linked list?",
    "difficulty": "medium",
    "expectedTopics": ["two pointers", "complexity"],
}

EVALUATION_REPLY = {
    "scores": {
        "correctness": {"score": 80, "feedback": "Mostly correct."},
        "reasoning": {"score": 70, "feedback": "Reasonable approach."},
        "communication": {"score": 60, "feedback": "A bit rushed."},
        "structure": {"score": 90, "feedback": "Well organised."},
        "confidence": {"score": 50, "feedback": "Some hesitation."},
    },
    "overall": 70,
    "strengths": ["Knows the two pointer technique"],
    "weaknesses": ["Skipped complexity analysis"],
    "suggestions": ["State time and space complexity"],
    "keyTopicsCovered": ["two pointers"],
    "keyTopicsMissed": ["complexity"],
    "shouldGenerateFollowUp": False,
    "adjustDifficulty": "maintain",
}

FOLLOW_UP_REPLY = {"question": "What is the space complexity of your approach?"}

SUMMARY_REPLY = {
    "overallAssessment": "Solid fundamentals with room to grow.",
    "performanceLevel": "good",
    "readinessScore": 72,
}


def evaluation_with(score: int, follow_up: bool = False) -> dict:
    reply = json.loads(json.dumps(EVALUATION_REPLY))
    for item in reply["scores"].values():
        item["score"] = score
    reply["overall"] = score
    reply["shouldGenerateFollowUp"] = follow_up
    return reply


class ScriptedAIClient:
    """Answers each prompt kind with a canned JSON reply; evaluations can be queued per call."""

    def __init__(self, evaluations: list[dict] | None = None, question: dict | None = None):
        self.calls: list[list[dict]] = []
        self.kinds: list[str] = []
        self.evaluations = list(evaluations or [])
        self.question = question or QUESTION_REPLY
        self.closed = False

    @staticmethod
    def _kind(prompt: str) -> str:
        if prompt.startswith("Generate the next interview question"):
            return "question"
        if prompt.startswith("Evaluate this interview response"):
            return "evaluation"
        if prompt.startswith("Based on the candidate's answer"):
            return "follow_up"
        if prompt.startswith("Generate an interview summary"):
            return "summary"
        return "unknown"

    async def generate(self, messages, model, temperature=None):
        self.calls.append([dict(item) for item in messages])
        kind = self._kind(str(messages[-1].get("content") or ""))
        self.kinds.append(kind)
        if kind == "question":
            return json.dumps(self.question)
        if kind == "evaluation":
            payload = self.evaluations.pop(0) if self.evaluations else EVALUATION_REPLY
            return f"```json\n{json.dumps(payload)}\n```"
        if kind == "follow_up":
            return json.dumps(FOLLOW_UP_REPLY)
        if kind == "summary":
            return json.dumps(SUMMARY_REPLY)
        return "{}"

    async def close(self):
        self.closed = True


class RateLimitError(Exception):
    status_code = 429


class RateLimitedClient:
    def __init__(self, message: str = "429 RESOURCE_EXHAUSTED. Please retry in 6.2s"):
        self.message = message
        self.calls = 0

    async def generate(self, messages, model, temperature=None):
        self.calls += 1
        raise RateLimitError(self.message)


class FlakyClient:
    """Rate limited for the first ``failures`` calls, then answers."""

    def __init__(self, failures: int, reply: str = "ok"):
        self.failures = failures
        self.reply = reply
        self.calls = 0

    async def generate(self, messages, model, temperature=None):
        self.calls += 1
        if self.calls <= self.failures:
            raise RateLimitError("quota exceeded")
        return self.reply


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("ALLOW_UNVERIFIED_JWT_DEV", "true")
    monkeypatch.setenv("QA_MODE", "true")
    monkeypatch.delenv("JWT_SECRET", raising=False)
    reset_metrics()


@pytest.fixture
def dev_jwt_token() -> str:
    def _enc(obj: dict) -> str:
        raw = json.dumps(obj, separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")

    header = _enc({"alg": "none", "typ": "JWT"})
    payload = _enc({"sub": "pytest-user", "iat": 0})
    return f"{header}.{payload}."


@pytest.fixture
def scripted_client() -> ScriptedAIClient:
    return ScriptedAIClient()


@pytest.fixture
def build_services():
    from interview_engine.dependencies import build_engine_services
    from interview_engine.interview.repository import LocalSessionRepository
    from interview_engine.speech.speech_service import MockSpeechService

    def _build(clients):
        return build_engine_services(
            clients=clients,
            speech=MockSpeechService(),
            repository=LocalSessionRepository(),
            sleep=RecordingSleep(),
        )

    return _build
