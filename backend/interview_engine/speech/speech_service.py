from __future__ import annotations

import logging
from typing import Protocol

import httpx

from core.config import DEEPGRAM_API_KEY, DEEPGRAM_MODEL, QA_MODE, SPEECH_TIMEOUT_SEC
from interview_engine.speech.voice_analysis import (
    VoiceAnalysis,
    WordTiming,
    analyze_word_timings,
    empty_voice_analysis,
    mock_voice_analysis,
)
from interview_engine.system_metrics import increment_metric

logger = logging.getLogger("interview_engine.speech.speech_service")

DEEPGRAM_LISTEN_URL = "https://api.deepgram.com/v1/listen"


class SpeechService(Protocol):
    async def transcribe_and_analyze(self, audio: bytes) -> VoiceAnalysis:
        ...


def _word_timings_from_alternative(alternative: dict) -> list[WordTiming]:
    timings: list[WordTiming] = []
    for item in alternative.get("words") or []:
        if not isinstance(item, dict):
            continue
        try:
            timings.append(
                WordTiming(
                    word=str(item.get("punctuated_word") or item.get("word") or ""),
                    start=float(item.get("start") or 0.0),
                    end=float(item.get("end") or 0.0),
                    confidence=float(item["confidence"]) if item.get("confidence") is not None else None,
                )
            )
        except (TypeError, ValueError):
            continue
    return timings


def analysis_from_deepgram_payload(payload: dict) -> VoiceAnalysis:
    channels = ((payload or {}).get("results") or {}).get("channels") or []
    if not channels:
        return empty_voice_analysis()
    alternatives = (channels[0] or {}).get("alternatives") or []
    if not alternatives or not isinstance(alternatives[0], dict):
        return empty_voice_analysis()

    alternative = alternatives[0]
    transcript = str(alternative.get("transcript") or "").strip()
    if not transcript:
        return empty_voice_analysis()

    raw_confidence = alternative.get("confidence")
    base_confidence = int(round(float(raw_confidence) * 100)) if raw_confidence else 70
    return analyze_word_timings(_word_timings_from_alternative(alternative), transcript, base_confidence)


class DeepgramSpeechService:
    """Prerecorded transcription over Deepgram's REST API.

    Never raises: malformed audio, transport failures and odd payloads all degrade
    to an empty analysis.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "nova-2",
        timeout_sec: float = 20.0,
        sample_rate: int = 16000,
        url: str = DEEPGRAM_LISTEN_URL,
    ):
        self._api_key = api_key
        self._model = model
        self._timeout_sec = float(timeout_sec)
        self._sample_rate = int(sample_rate)
        self._url = url

    async def transcribe_and_analyze(self, audio: bytes) -> VoiceAnalysis:
        if not audio:
            return empty_voice_analysis()

        increment_metric("transcriptions_total")
        params = {
            "model": self._model,
            "punctuate": "true",
            "encoding": "linear16",
            "sample_rate": str(self._sample_rate),
            "filler_words": "true",
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout_sec) as client:
                response = await client.post(
                    self._url,
                    params=params,
                    headers={
                        "Authorization": f"Token {self._api_key}",
                        "Content-Type": "application/octet-stream",
                    },
                    content=bytes(audio),
                )
        except httpx.HTTPError as exc:
            increment_metric("transcription_failures_total")
            logger.warning("speech transcription request failed | err=%s", exc)
            return empty_voice_analysis()

        if response.status_code != 200:
            increment_metric("transcription_failures_total")
            logger.warning("speech transcription rejected | status=%s", response.status_code)
            return empty_voice_analysis()

        try:
            payload = response.json()
        except ValueError:
            increment_metric("transcription_failures_total")
            logger.warning("speech transcription returned non-json body")
            return empty_voice_analysis()

        if not isinstance(payload, dict):
            return empty_voice_analysis()
        return analysis_from_deepgram_payload(payload)


class MockSpeechService:
    async def transcribe_and_analyze(self, audio: bytes) -> VoiceAnalysis:
        if not audio:
            return empty_voice_analysis()
        return mock_voice_analysis()


def build_speech_service() -> SpeechService:
    if QA_MODE or not DEEPGRAM_API_KEY:
        if not QA_MODE:
            logger.warning("DEEPGRAM_API_KEY not configured; using mock speech analysis")
        return MockSpeechService()
    return DeepgramSpeechService(api_key=DEEPGRAM_API_KEY, model=DEEPGRAM_MODEL, timeout_sec=SPEECH_TIMEOUT_SEC)
