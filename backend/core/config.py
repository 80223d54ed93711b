import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=False)


def _env_flag(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(*names: str) -> list[str]:
    for name in names:
        raw = str(os.getenv(name) or "").strip()
        if raw:
            return [item.strip() for item in raw.split(",") if item.strip()]
    return []


# Provider credentials: first non-empty variable wins, comma separated for multi-key rotation.
AI_API_KEYS = _env_list("AI_API_KEYS", "AI_API_KEY", "GEMINI_API_KEYS", "GEMINI_API_KEY", "OPENAI_API_KEY")
AI_BASE_URL = str(os.getenv("AI_BASE_URL") or "https://generativelanguage.googleapis.com/v1beta/openai/").strip()
MODEL_NAME = str(os.getenv("MODEL_NAME") or "gemini-2.5-flash").strip()
AI_MAX_BACKOFF_RETRIES = max(0, int(os.getenv("AI_MAX_BACKOFF_RETRIES", "3")))
AI_BACKOFF_BASE_SEC = max(0.0, float(os.getenv("AI_BACKOFF_BASE_SEC", "2.0")))
AI_REQUEST_TIMEOUT_SEC = max(1.0, float(os.getenv("AI_REQUEST_TIMEOUT_SEC", "30")))

DEEPGRAM_API_KEY = str(os.getenv("DEEPGRAM_API_KEY") or "").strip()
DEEPGRAM_MODEL = str(os.getenv("DEEPGRAM_MODEL") or "nova-2").strip()
SPEECH_TIMEOUT_SEC = max(1.0, float(os.getenv("SPEECH_TIMEOUT_SEC", "20")))

QA_MODE = _env_flag("QA_MODE")

DEFAULT_TOTAL_QUESTIONS = max(1, int(os.getenv("DEFAULT_TOTAL_QUESTIONS", "10")))
MAX_TOTAL_QUESTIONS = max(DEFAULT_TOTAL_QUESTIONS, int(os.getenv("MAX_TOTAL_QUESTIONS", "30")))

SESSION_STORE_PATH = str(os.getenv("SESSION_STORE_PATH") or "").strip()

USE_REDIS_CONVERSATIONS = _env_flag("USE_REDIS_CONVERSATIONS")
REDIS_URL = str(os.getenv("REDIS_URL") or "").strip()
CONVERSATION_TTL_SEC = max(60, int(os.getenv("CONVERSATION_TTL_SEC", "21600")))
