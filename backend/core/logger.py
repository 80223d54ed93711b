import json
import logging
from typing import Any

logger = logging.getLogger("interview_engine.events")

# candidate speech and prompts never reach the log verbatim
_REDACTED_KEYS = {"text", "answer", "answer_text", "transcript", "transcription", "prompt"}
MAX_FIELD_CHARS = 300


def _sanitize_value(key: str, value: Any) -> Any:
	normalized_key = str(key or "").lower()
	if normalized_key in _REDACTED_KEYS:
		text = str(value or "")
		return {
			"redacted": True,
			"length": len(text),
		}
	if isinstance(value, (bytes, bytearray)):
		return {"bytes": len(value)}
	if isinstance(value, str):
		return value if len(value) <= MAX_FIELD_CHARS else f"{value[:MAX_FIELD_CHARS]}..."
	if isinstance(value, (int, float, bool)) or value is None:
		return value
	if isinstance(value, dict):
		return {str(k): _sanitize_value(str(k), v) for k, v in value.items()}
	if isinstance(value, (list, tuple, set)):
		return [_sanitize_value(normalized_key, item) for item in value]
	return str(value)


def log_event(component: str, event: str, session_id: str, level: int = logging.INFO, **kwargs) -> None:
	"""One structured JSON line per interview lifecycle event."""
	if not logger.isEnabledFor(level):
		return
	payload = {
		"component": str(component or "interview_engine"),
		"event": str(event or "unknown"),
		"session_id": str(session_id or ""),
	}
	payload.update({str(k): _sanitize_value(str(k), v) for k, v in kwargs.items()})
	logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
