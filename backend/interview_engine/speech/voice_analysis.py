from __future__ import annotations

from dataclasses import asdict, dataclass, field
import re


FILLER_WORDS = {
    "um", "uh", "er", "ah", "like", "basically", "actually", "literally",
    "so", "well", "right", "okay", "hmm", "mmm",
}

SIGNIFICANT_PAUSE_SEC = 0.5
LONG_PAUSE_SEC = 2.0

_TOKEN_STRIP_RE = re.compile(r"[^\w']+")


@dataclass
class WordTiming:
    word: str
    start: float
    end: float
    confidence: float | None = None


@dataclass
class FillerWordCount:
    word: str
    count: int = 0
    timestamps: list[float] = field(default_factory=list)


@dataclass
class PauseSpan:
    start: float
    end: float
    duration: float


@dataclass
class SpeechPatterns:
    speaking_rate: str = "normal"
    consistency: str = "consistent"
    energy: str = "moderate"


@dataclass
class VoiceAnalysis:
    transcript: str = ""
    confidence: int = 0
    hesitation_count: int = 0
    filler_words: list[FillerWordCount] = field(default_factory=list)
    pauses: list[PauseSpan] = field(default_factory=list)
    average_pause_sec: float = 0.0
    words_per_minute: int = 0
    clarity_score: int = 0
    speech_patterns: SpeechPatterns = field(default_factory=SpeechPatterns)

    @property
    def total_fillers(self) -> int:
        return sum(item.count for item in self.filler_words)

    @property
    def long_pause_count(self) -> int:
        return sum(1 for pause in self.pauses if pause.duration > LONG_PAUSE_SEC)

    @property
    def has_signal(self) -> bool:
        return bool(self.transcript.strip()) or self.words_per_minute > 0

    def summary(self, max_fillers: int = 5) -> dict:
        return {
            "transcription": self.transcript,
            "confidence": self.confidence,
            "clarity_score": self.clarity_score,
            "words_per_minute": self.words_per_minute,
            "hesitation_count": self.hesitation_count,
            "filler_words": [asdict(item) for item in self.filler_words[:max_fillers]],
        }

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "VoiceAnalysis":
        data = dict(data or {})
        patterns = dict(data.get("speech_patterns") or {})
        return cls(
            transcript=str(data.get("transcript") or ""),
            confidence=int(data.get("confidence") or 0),
            hesitation_count=int(data.get("hesitation_count") or 0),
            filler_words=[
                FillerWordCount(
                    word=str(item.get("word") or ""),
                    count=int(item.get("count") or 0),
                    timestamps=[float(ts) for ts in item.get("timestamps") or []],
                )
                for item in data.get("filler_words") or []
                if isinstance(item, dict)
            ],
            pauses=[
                PauseSpan(
                    start=float(item.get("start") or 0.0),
                    end=float(item.get("end") or 0.0),
                    duration=float(item.get("duration") or 0.0),
                )
                for item in data.get("pauses") or []
                if isinstance(item, dict)
            ],
            average_pause_sec=float(data.get("average_pause_sec") or 0.0),
            words_per_minute=int(data.get("words_per_minute") or 0),
            clarity_score=int(data.get("clarity_score") or 0),
            speech_patterns=SpeechPatterns(
                speaking_rate=str(patterns.get("speaking_rate") or "normal"),
                consistency=str(patterns.get("consistency") or "consistent"),
                energy=str(patterns.get("energy") or "moderate"),
            ),
        )


def _normalize_token(word: str) -> str:
    return _TOKEN_STRIP_RE.sub("", str(word or "").lower()).strip()


def is_filler_word(word: str) -> bool:
    return _normalize_token(word) in FILLER_WORDS


def _variance(values: list[float]) -> float:
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((value - mean) ** 2 for value in values) / len(values)


def clarity_score(analysis: VoiceAnalysis) -> int:
    score = 100
    score -= min(30, analysis.total_fillers * 3)
    score -= min(20, analysis.long_pause_count * 5)
    if analysis.words_per_minute > 180:
        score -= 10
    elif 0 < analysis.words_per_minute < 100:
        score -= 10
    score -= min(20, analysis.hesitation_count * 2)
    return max(0, int(round(score)))


def speech_patterns(analysis: VoiceAnalysis) -> SpeechPatterns:
    patterns = SpeechPatterns()
    wpm = analysis.words_per_minute

    if wpm > 160:
        patterns.speaking_rate = "fast"
    elif 0 < wpm < 120:
        patterns.speaking_rate = "slow"

    if analysis.pauses:
        variance = _variance([pause.duration for pause in analysis.pauses])
        if variance > 1:
            patterns.consistency = "variable"
        elif variance > 0.5:
            patterns.consistency = "somewhat variable"

    hesitation_ratio = analysis.hesitation_count / max(1, wpm)
    if hesitation_ratio > 0.1:
        patterns.energy = "low"
    elif wpm > 150 and analysis.hesitation_count < 3:
        patterns.energy = "high"
    return patterns


def adjusted_confidence(analysis: VoiceAnalysis, base_confidence: int) -> int:
    confidence = float(base_confidence)
    if analysis.clarity_score >= 80:
        confidence = min(100.0, confidence + 10)
    elif analysis.clarity_score < 50:
        confidence = max(0.0, confidence - 15)

    if analysis.speech_patterns.speaking_rate == "normal":
        confidence = min(100.0, confidence + 5)

    if analysis.speech_patterns.consistency == "consistent":
        confidence = min(100.0, confidence + 5)
    elif analysis.speech_patterns.consistency == "variable":
        confidence = max(0.0, confidence - 10)
    return int(round(confidence))


def analyze_word_timings(words: list[WordTiming], transcript: str, base_confidence: int = 70) -> VoiceAnalysis:
    analysis = VoiceAnalysis(transcript=str(transcript or "").strip(), confidence=int(base_confidence))
    if not words:
        return analysis

    total_duration = float(words[-1].end) - float(words[0].start)
    if total_duration > 0:
        analysis.words_per_minute = int(round((len(words) / total_duration) * 60))

    fillers: dict[str, FillerWordCount] = {}
    for idx, timing in enumerate(words):
        token = _normalize_token(timing.word)
        if token in FILLER_WORDS:
            entry = fillers.setdefault(token, FillerWordCount(word=token))
            entry.count += 1
            entry.timestamps.append(float(timing.start))
            analysis.hesitation_count += 1

        if idx == 0:
            continue
        previous_end = float(words[idx - 1].end)
        gap = float(timing.start) - previous_end
        if gap > SIGNIFICANT_PAUSE_SEC:
            analysis.pauses.append(PauseSpan(start=previous_end, end=float(timing.start), duration=gap))
        if gap > LONG_PAUSE_SEC:
            analysis.hesitation_count += 1

    analysis.filler_words = sorted(fillers.values(), key=lambda item: item.count, reverse=True)
    if analysis.pauses:
        analysis.average_pause_sec = sum(pause.duration for pause in analysis.pauses) / len(analysis.pauses)

    analysis.clarity_score = clarity_score(analysis)
    analysis.speech_patterns = speech_patterns(analysis)
    analysis.confidence = adjusted_confidence(analysis, int(base_confidence))
    return analysis


def empty_voice_analysis() -> VoiceAnalysis:
    return VoiceAnalysis(
        speech_patterns=SpeechPatterns(speaking_rate="unknown", consistency="unknown", energy="unknown"),
    )


def mock_voice_analysis() -> VoiceAnalysis:
    return VoiceAnalysis(
        transcript="This is a mock transcription for development purposes.",
        confidence=85,
        hesitation_count=2,
        filler_words=[
            FillerWordCount(word="um", count=1, timestamps=[2.5]),
            FillerWordCount(word="like", count=1, timestamps=[5.2]),
        ],
        pauses=[PauseSpan(start=3.0, end=3.8, duration=0.8)],
        average_pause_sec=0.8,
        words_per_minute=145,
        clarity_score=78,
        speech_patterns=SpeechPatterns(speaking_rate="normal", consistency="somewhat variable", energy="moderate"),
    )
