import json
import logging
import re
from typing import Any

logger = logging.getLogger("interview_engine.ai.parsing")

_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def parse_ai_response(text: str | None) -> Any:
    """Extract the JSON payload from a model reply.

    Fenced blocks win, then raw text that looks like JSON. Anything else, including
    JSON that fails to decode, comes back as ``{"content": text, "type": "text"}``.
    """
    raw = str(text or "")
    try:
        match = _FENCED_BLOCK_RE.search(raw)
        if match:
            return json.loads(match.group(1).strip())

        cleaned = raw.strip()
        if cleaned.startswith("{") or cleaned.startswith("["):
            return json.loads(cleaned)
    except ValueError as exc:
        logger.warning("ai response is not valid json | err=%s length=%s", exc, len(raw))

    return {"content": raw, "type": "text"}
