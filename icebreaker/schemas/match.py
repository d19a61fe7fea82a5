from datetime import datetime
from enum import Enum
from typing import List

from pydantic import BaseModel

from icebreaker.schemas.interaction import ConnectionStatus
from icebreaker.schemas.user import UserPublic


class QuestionCategory(str, Enum):
    LIFESTYLE = "LIFESTYLE"
    FOOD = "FOOD"
    BOOKS = "BOOKS"
    GOALS = "GOALS"
    DAILY = "DAILY"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class MatchLevel(str, Enum):
    EXCELLENT = "excellent"
    GREAT = "great"
    GOOD = "good"
    FAIR = "fair"
    LOW = "low"

    @classmethod
    def for_percentage(cls, percentage: float) -> "MatchLevel":
        if percentage >= 90:
            return cls.EXCELLENT
        if percentage >= 80:
            return cls.GREAT
        if percentage >= 70:
            return cls.GOOD
        if percentage >= 60:
            return cls.FAIR
        return cls.LOW


class AIQuestion(BaseModel):

    id: str
    text: str
    category: QuestionCategory
    created_at: datetime


class QuestionRequest(BaseModel):

    category: QuestionCategory | None = None


class CompatibilityAnalysis(BaseModel):

    # normalised to 0..1
    score: float
    reason: str = "Similar interests detected"
    shared_topics: List[str] = []


class SharedAnswer(BaseModel):

    question_text: str
    user_answer: str
    match_answer: str
    compatibility: float


class MatchResult(BaseModel):

    user: UserPublic
    compatibility_score: float
    match_percentage: float
    match_level: MatchLevel
    shared_answers: List[SharedAnswer]
    ai_insight: str
    conversation_starter: str
    distance_km: float
    connection_status: ConnectionStatus
    matched_at: datetime
