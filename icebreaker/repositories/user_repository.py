from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from icebreaker.models.user import UserDocument
from icebreaker.utils.cursors import object_id


class UserRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db["users"]

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("email", ASCENDING)], unique=True)

    async def create_user(self, email: str, hashed_password: str, profile: Dict[str, Any]) -> str:
        now = datetime.now(timezone.utc)
        doc: UserDocument = {
            "email": email,
            "hashed_password": hashed_password,
            "first_name": profile.get("first_name", ""),
            "age": profile.get("age", 0),
            "bio": profile.get("bio", ""),
            "location": profile.get("location", ""),
            "interests": profile.get("interests", []),
            "latitude": None,
            "longitude": None,
            "is_visible": True,
            "is_online": False,
            "last_seen": now,
            "ai_answers": [],
            "created_at": now,
        }
        result = await self._collection.insert_one(doc)
        return str(result.inserted_id)

    async def get_user_by_email(self, email: str) -> Optional[UserDocument]:
        user = await self._collection.find_one({"email": email})
        if user:
            user["_id"] = str(user["_id"])
        return user

    async def get_user_by_id(self, user_id: str) -> Optional[UserDocument]:
        oid = object_id(user_id)
        if oid is None:
            return None
        user = await self._collection.find_one({"_id": oid})
        if user:
            user["_id"] = str(user["_id"])
        return user

    async def update_fields(self, user_id: str, fields: Dict[str, Any]) -> bool:
        oid = object_id(user_id)
        if oid is None or not fields:
            return False
        result = await self._collection.update_one({"_id": oid}, {"$set": fields})
        return result.matched_count > 0

    async def add_answer(self, user_id: str, answer: Dict[str, Any]) -> bool:
        oid = object_id(user_id)
        if oid is None:
            return False
        # one answer per question; a new answer replaces the previous one
        await self._collection.update_one({"_id": oid}, {"$pull": {"ai_answers": {"question_id": answer["question_id"]}}})
        result = await self._collection.update_one({"_id": oid}, {"$push": {"ai_answers": answer}})
        return result.matched_count > 0

    async def list_visible(self, exclude_user_id: str, limit: int = 100) -> List[UserDocument]:
        query: Dict[str, Any] = {"is_visible": True, "latitude": {"$ne": None}, "longitude": {"$ne": None}}
        oid = object_id(exclude_user_id)
        if oid is not None:
            query["_id"] = {"$ne": oid}
        cursor = self._collection.find(query).limit(limit)
        items = await cursor.to_list(length=limit)
        for it in items:
            it["_id"] = str(it["_id"])
        return items
