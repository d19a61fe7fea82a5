from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class AIAnswerIn(BaseModel):

    question_id: str
    question_text: str
    answer: str = Field(min_length=1)
    category: Optional[str] = None


class AIAnswerPublic(AIAnswerIn):

    id: str
    created_at: Optional[datetime] = None


class UserBase(BaseModel):

    email: EmailStr


class UserCreate(UserBase):

    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1)
    age: int = Field(ge=18, le=120)
    bio: str = ""
    location: str = ""
    interests: List[str] = []


class ProfileUpdate(BaseModel):

    first_name: Optional[str] = Field(default=None, min_length=1)
    age: Optional[int] = Field(default=None, ge=18, le=120)
    bio: Optional[str] = None
    location: Optional[str] = None
    interests: Optional[List[str]] = None


class LocationUpdate(BaseModel):

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class VisibilityUpdate(BaseModel):

    is_visible: bool


class UserPublic(BaseModel):

    id: str
    first_name: str
    age: int
    bio: str = ""
    location: str = ""
    interests: List[str] = []
    is_online: bool = False
    last_seen: Optional[datetime] = None
    distance_km: Optional[float] = None


class UserPrivate(UserPublic):

    email: EmailStr
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_visible: bool = True
    ai_answers: List[AIAnswerPublic] = []


class Token(BaseModel):

    access_token: str
    token_type: str = "bearer"


class TokenPayload(BaseModel):

    sub: str
    exp: int


def user_public(doc: dict, distance_km: float | None = None) -> UserPublic:
    return UserPublic(
        id=doc["_id"],
        first_name=doc.get("first_name", ""),
        age=doc.get("age", 0),
        bio=doc.get("bio", ""),
        location=doc.get("location", ""),
        interests=doc.get("interests", []),
        is_online=doc.get("is_online", False),
        last_seen=doc.get("last_seen"),
        distance_km=distance_km,
    )


def user_private(doc: dict) -> UserPrivate:
    return UserPrivate(
        **user_public(doc).model_dump(exclude={"distance_km"}),
        email=doc["email"],
        latitude=doc.get("latitude"),
        longitude=doc.get("longitude"),
        is_visible=doc.get("is_visible", True),
        ai_answers=[AIAnswerPublic(**a) for a in doc.get("ai_answers", [])],
    )
