from typing import Literal

from pydantic import BaseModel, Field


InterviewType = Literal["technical", "behavioral", "hr", "system-design"]
Personality = Literal["strict", "friendly", "professional"]
Difficulty = Literal["easy", "medium", "hard", "expert"]


class StartInterviewRequest(BaseModel):
    interview_type: InterviewType
    personality: Personality | None = None
    difficulty: Difficulty | None = None
    total_questions: int | None = Field(default=None, ge=1, le=100)
    sub_category: str | None = None
    target_company: str | None = None
    target_role: str | None = None
    voice_enabled: bool | None = None


class PresencePayload(BaseModel):
    eye_contact_score: float = Field(ge=0, le=100)
    posture_score: float = Field(ge=0, le=100)


class SubmitAnswerRequest(BaseModel):
    answer: str | None = None
    # base64 linear16 audio
    audio_data: str | None = None
    presence: PresencePayload | None = None
