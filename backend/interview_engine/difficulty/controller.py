from dataclasses import dataclass
import time

from interview_engine.interview.models import DifficultyAdjustment, DifficultyState


LEVELS = ["easy", "medium", "hard", "expert"]

WINDOW_SIZE = 3
MIN_SCORES = 2
ESCALATE_AT = 85
DEESCALATE_BELOW = 50


@dataclass
class DifficultyDecision:
    adjust: bool
    direction: str | None = None
    from_level: str = "medium"
    to_level: str = "medium"
    reason: str = ""
    average: float = 0.0


@dataclass
class ScoreWindow:
    window_size: int = WINDOW_SIZE

    def recent(self, scores: list[float] | None) -> list[float]:
        values = [float(item) for item in list(scores or [])][-self.window_size:]
        return [value for value in values if value > 0]


@dataclass
class DifficultyPolicy:
    def _idx(self, level: str) -> int:
        if level not in LEVELS:
            return 1
        return LEVELS.index(level)

    def decide(self, recent: list[float], current_level: str) -> DifficultyDecision:
        current = current_level if current_level in LEVELS else "medium"
        if len(recent) < MIN_SCORES:
            return DifficultyDecision(adjust=False, from_level=current, to_level=current)

        average = sum(recent) / len(recent)
        idx = self._idx(current)

        if average >= ESCALATE_AT and idx < len(LEVELS) - 1:
            return DifficultyDecision(
                adjust=True,
                direction="increase",
                from_level=current,
                to_level=LEVELS[idx + 1],
                reason="Excellent performance, increasing challenge",
                average=average,
            )
        if average < DEESCALATE_BELOW and idx > 0:
            return DifficultyDecision(
                adjust=True,
                direction="decrease",
                from_level=current,
                to_level=LEVELS[idx - 1],
                reason="Providing more accessible questions",
                average=average,
            )
        return DifficultyDecision(adjust=False, from_level=current, to_level=current, average=average)


class DifficultyController:
    def __init__(self):
        self.window = ScoreWindow()
        self.policy = DifficultyPolicy()

    def decide(self, recent_scores: list[float] | None, current_difficulty: str) -> DifficultyDecision:
        return self.policy.decide(self.window.recent(recent_scores), current_difficulty)

    def apply(self, state: DifficultyState, decision: DifficultyDecision, question_index: int) -> bool:
        return apply_decision(state, decision, question_index)


_default_controller = DifficultyController()


def decide(recent_scores: list[float] | None, current_difficulty: str) -> DifficultyDecision:
    return _default_controller.decide(recent_scores, current_difficulty)


def apply_decision(state: DifficultyState, decision: DifficultyDecision, question_index: int) -> bool:
    if not decision.adjust or decision.to_level == state.current:
        return False
    state.adjustments.append(
        DifficultyAdjustment(
            from_level=state.current,
            to_level=decision.to_level,
            direction=str(decision.direction or ""),
            reason=decision.reason,
            question_index=int(question_index),
            timestamp=time.time(),
        )
    )
    state.current = decision.to_level
    return True
