from interview_engine.scoring.aggregator import (
    DEFAULT_WEIGHTS,
    ScoringWeights,
    compute_response_scores,
    performance_level,
    presence_score,
    weighted_overall,
    zero_scores,
)

__all__ = [
    "DEFAULT_WEIGHTS",
    "ScoringWeights",
    "compute_response_scores",
    "performance_level",
    "presence_score",
    "weighted_overall",
    "zero_scores",
]
