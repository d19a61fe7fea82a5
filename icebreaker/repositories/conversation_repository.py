from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from icebreaker.models.conversation import ConversationDocument
from icebreaker.utils.cursors import before_cursor, encode_cursor, object_id


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["conversations"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("participants", ASCENDING)])
        await self.collection.create_index([("last_message_at", DESCENDING)])

    async def get_or_create_one_to_one(self, user_a: str, user_b: str) -> ConversationDocument:
        participants = sorted([user_a, user_b])
        existing = await self.collection.find_one({"participants": participants})
        if existing:
            existing["_id"] = str(existing.get("_id"))
            return existing
        now = datetime.now(timezone.utc)
        doc: ConversationDocument = {
            "participants": participants,
            "created_at": now,
            "last_message_at": now,
            "last_message_preview": None,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def find_one_to_one(self, user_a: str, user_b: str) -> Optional[ConversationDocument]:
        doc = await self.collection.find_one({"participants": sorted([user_a, user_b])})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def get(self, conversation_id: str) -> Optional[ConversationDocument]:
        oid = object_id(conversation_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def update_on_new_message(self, conversation_id: str, preview: str) -> None:
        await self.collection.update_one(
            {"_id": object_id(conversation_id)},
            {"$set": {"last_message_at": datetime.now(timezone.utc), "last_message_preview": preview}},
        )

    async def delete(self, conversation_id: str) -> bool:
        oid = object_id(conversation_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid})
        return result.deleted_count > 0

    async def list_for_user(self, user_id: str, limit: int = 20, cursor: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        query: Dict[str, Any] = {"participants": {"$in": [user_id]}}
        query.update(before_cursor("last_message_at", cursor))
        sort = [("last_message_at", DESCENDING), ("_id", DESCENDING)]
        cursor_db = self.collection.find(query).sort(sort).limit(limit)
        items = await cursor_db.to_list(length=limit)
        for it in items:
            it["_id"] = str(it.get("_id"))
        next_cursor = None
        if len(items) == limit:
            last = items[-1]
            next_cursor = encode_cursor(last["last_message_at"], last["_id"])
        return items, next_cursor
