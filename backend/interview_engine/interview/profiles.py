from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field


@dataclass
class CandidateProfile:
    experience_years: float = 0.0
    skills: list[str] = field(default_factory=list)
    preferred_difficulty: str = "medium"
    preferred_personality: str = "professional"
    voice_enabled: bool = True

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "CandidateProfile":
        data = dict(data or {})
        return cls(
            experience_years=float(data.get("experience_years") or 0.0),
            skills=[str(item) for item in data.get("skills") or [] if str(item or "").strip()],
            preferred_difficulty=str(data.get("preferred_difficulty") or "medium"),
            preferred_personality=str(data.get("preferred_personality") or "professional"),
            voice_enabled=bool(data.get("voice_enabled", True)),
        )


class LocalProfileStore:
    def __init__(self):
        self._lock = asyncio.Lock()
        self._profiles: dict[str, CandidateProfile] = {}

    async def get_profile(self, owner_id: str) -> CandidateProfile:
        async with self._lock:
            profile = self._profiles.get(str(owner_id))
            return CandidateProfile.from_dict(profile.to_dict()) if profile else CandidateProfile()

    async def set_profile(self, owner_id: str, profile: CandidateProfile) -> None:
        async with self._lock:
            self._profiles[str(owner_id)] = CandidateProfile.from_dict(profile.to_dict())
