import threading
import time
from typing import Any


_COUNTER_NAMES = (
    "ai_calls_total",
    "ai_rate_limited_total",
    "ai_key_rotations_total",
    "ai_backoff_retries_total",
    "ai_provider_exhausted_total",
    "ai_fallbacks_total",
    "interviews_started_total",
    "interviews_completed_total",
    "answers_evaluated_total",
    "answers_skipped_total",
    "follow_ups_generated_total",
    "difficulty_adjustments_total",
    "transcriptions_total",
    "transcription_failures_total",
    "ws_connections_active",
    "ws_disconnects_total",
    "ai_latency_total_ms",
    "ai_latency_samples",
)

_lock = threading.Lock()
_metrics: dict[str, float] = {name: 0.0 for name in _COUNTER_NAMES}


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = float(_metrics.get(key, 0.0)) + float(amount)


def decrement_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        next_value = float(_metrics.get(key, 0.0)) - float(amount)
        _metrics[key] = max(0.0, next_value)


def observe_ai_latency_ms(value_ms: float) -> None:
    latency = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["ai_latency_total_ms"] = float(_metrics.get("ai_latency_total_ms", 0.0)) + latency
        _metrics["ai_latency_samples"] = float(_metrics.get("ai_latency_samples", 0.0)) + 1.0


def reset_metrics() -> None:
    with _lock:
        _metrics.clear()
        _metrics.update({name: 0.0 for name in _COUNTER_NAMES})


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)

    latency_samples = max(1.0, float(data.get("ai_latency_samples") or 0.0))

    payload: dict[str, Any] = {"generated_at": time.time()}
    for name, value in data.items():
        if name == "ai_latency_total_ms":
            payload[name] = float(value or 0.0)
        else:
            payload[name] = int(value or 0.0)
    payload["avg_ai_latency_ms"] = round(float(data.get("ai_latency_total_ms") or 0.0) / latency_samples, 2)

    if extra:
        payload.update(extra)
    return payload
