from datetime import datetime
from typing import List, Optional, TypedDict


class AIAnswerDocument(TypedDict, total=False):
    id: str
    question_id: str
    question_text: str
    answer: str
    category: Optional[str]
    created_at: datetime


class UserDocument(TypedDict, total=False):

    _id: str
    email: str
    hashed_password: str
    first_name: str
    age: int
    bio: str
    location: str
    interests: List[str]
    latitude: Optional[float]
    longitude: Optional[float]
    is_visible: bool
    is_online: bool
    last_seen: Optional[datetime]
    ai_answers: List[AIAnswerDocument]
    created_at: datetime
