from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from icebreaker.models.message import MessageDocument, MessageKind
from icebreaker.utils.cursors import before_cursor, encode_cursor, object_id


# statuses that count towards the receiver's unread total
UNREAD_STATUSES = ["sent", "delivered"]


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("conversation_id", ASCENDING), ("timestamp", DESCENDING)])
        await self.collection.create_index([("receiver_id", ASCENDING), ("delivery_status", ASCENDING)])

    async def save_message(
        self,
        conversation_id: str,
        sender_id: str,
        receiver_id: str,
        content: str,
        kind: MessageKind = "text",
        client_message_id: Optional[str] = None,
    ) -> MessageDocument:
        doc: MessageDocument = {
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "content": content,
            "kind": kind,
            "timestamp": datetime.now(timezone.utc),
            "delivery_status": "sending",
            "client_message_id": client_message_id,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        return doc

    async def get(self, message_id: str) -> Optional[MessageDocument]:
        oid = object_id(message_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def set_status(self, message_id: str, status: str, allowed_from: Iterable[str]) -> Optional[MessageDocument]:
        """Move one message to ``status`` if it is currently in ``allowed_from``.

        Returns the updated document, or None when the message does not exist
        or its current status does not allow the move.
        """
        oid = object_id(message_id)
        if oid is None:
            return None
        doc = await self.collection.find_one_and_update(
            {"_id": oid, "delivery_status": {"$in": list(allowed_from)}},
            {"$set": {"delivery_status": status}},
            return_document=ReturnDocument.AFTER,
        )
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def set_status_many(self, query: Dict[str, Any], status: str, allowed_from: Iterable[str]) -> List[MessageDocument]:
        """Move every matching message in ``allowed_from`` to ``status``; returns the moved messages."""
        allowed = list(allowed_from)
        query = dict(query)
        query["delivery_status"] = {"$in": allowed}
        items = await self.collection.find(query).to_list(length=1000)
        if not items:
            return []
        ids = [it["_id"] for it in items]
        await self.collection.update_many(
            {"_id": {"$in": ids}, "delivery_status": {"$in": allowed}},
            {"$set": {"delivery_status": status}},
        )
        for it in items:
            it["_id"] = str(it["_id"])
            it["delivery_status"] = status
        return items

    async def get_messages_by_conversation(
        self,
        conversation_id: str,
        limit: int = 50,
        cursor: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        query: Dict[str, Any] = {"conversation_id": conversation_id}
        query.update(before_cursor("timestamp", cursor))
        sort = [("timestamp", DESCENDING), ("_id", DESCENDING)]
        cur = self.collection.find(query).sort(sort).limit(limit)
        items = await cur.to_list(length=limit)
        for it in items:
            it["_id"] = str(it.get("_id"))
        next_cursor = None
        if len(items) == limit:
            last = items[-1]
            next_cursor = encode_cursor(last["timestamp"], last["_id"])
        # oldest first for display
        return list(reversed(items)), next_cursor

    async def get_last_message(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        items, _ = await self.get_messages_by_conversation(conversation_id, limit=1)
        return items[-1] if items else None

    async def get_unread(self, user_id: str, from_user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"receiver_id": user_id, "delivery_status": {"$in": UNREAD_STATUSES}}
        if from_user_id:
            query["sender_id"] = from_user_id
        cursor = self.collection.find(query).sort("timestamp", ASCENDING)
        items = await cursor.to_list(length=1000)
        for it in items:
            it["_id"] = str(it.get("_id"))
        return items

    async def count_unread(self, user_id: str, conversation_id: Optional[str] = None) -> int:
        query: Dict[str, Any] = {"receiver_id": user_id, "delivery_status": {"$in": UNREAD_STATUSES}}
        if conversation_id:
            query["conversation_id"] = conversation_id
        return await self.collection.count_documents(query)

    async def get_for_receiver_since(self, user_id: str, since_ts_ms: int) -> List[Dict[str, Any]]:
        since = datetime.fromtimestamp(since_ts_ms / 1000.0, tz=timezone.utc)
        cursor = self.collection.find({"receiver_id": user_id, "timestamp": {"$gt": since}}).sort("timestamp", ASCENDING)
        items = await cursor.to_list(length=1000)
        for it in items:
            it["_id"] = str(it.get("_id"))
        return items

    async def delete_for_conversation(self, conversation_id: str) -> int:
        result = await self.collection.delete_many({"conversation_id": conversation_id})
        return result.deleted_count or 0
