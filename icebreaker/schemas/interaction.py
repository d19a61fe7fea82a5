from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class InteractionType(str, Enum):
    WAVE = "wave"
    WAVE_RECEIVED = "wave_received"
    INTRO_SENT = "intro_sent"
    INTRO_RECEIVED = "intro_received"
    CONVERSATION = "conversation"
    PASS = "pass"
    BLOCK = "block"


class ConnectionStatus(str, Enum):
    NO_INTERACTION = "no_interaction"
    WAVE_SENT = "wave_sent"
    WAVE_RECEIVED = "wave_received"
    INTRO_SENT = "intro_sent"
    INTRO_RECEIVED = "intro_received"
    CONNECTED = "connected"
    PASSED = "passed"
    BLOCKED = "blocked"


class InteractionPublic(BaseModel):

    counterpart_id: str
    type: InteractionType
    timestamp: datetime
    message: Optional[str] = None


class ConnectionStatusPublic(BaseModel):

    user_id: str
    status: ConnectionStatus
    can_interact: bool


class IntroRequest(BaseModel):

    message: str = Field(min_length=1, max_length=500)


class ReportRequest(BaseModel):

    reason: str = Field(min_length=1, max_length=1000)


def interaction_public(doc: dict) -> InteractionPublic:
    return InteractionPublic(
        counterpart_id=doc["counterpart_id"],
        type=doc["type"],
        timestamp=doc["timestamp"],
        message=doc.get("message"),
    )
