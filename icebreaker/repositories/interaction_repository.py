from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from icebreaker.models.interaction import InteractionDocument, ReportDocument


class InteractionRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["interactions"]

    @property
    def reports(self):
        return self._db["reports"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("owner_id", ASCENDING), ("counterpart_id", ASCENDING)], unique=True)
        await self.collection.create_index([("owner_id", ASCENDING), ("timestamp", DESCENDING)])

    async def record(self, owner_id: str, counterpart_id: str, interaction_type: str, message: Optional[str] = None) -> InteractionDocument:
        doc: InteractionDocument = {
            "owner_id": owner_id,
            "counterpart_id": counterpart_id,
            "type": interaction_type,
            "timestamp": datetime.now(timezone.utc),
            "message": message,
        }
        # overwrite: one active interaction per counterpart, no history
        await self.collection.update_one(
            {"owner_id": owner_id, "counterpart_id": counterpart_id},
            {"$set": doc},
            upsert=True,
        )
        return doc

    async def get(self, owner_id: str, counterpart_id: str) -> Optional[InteractionDocument]:
        doc = await self.collection.find_one({"owner_id": owner_id, "counterpart_id": counterpart_id})
        if doc:
            doc["_id"] = str(doc["_id"])
        return doc

    async def get_many(self, owner_id: str, counterpart_ids: Iterable[str]) -> Dict[str, InteractionDocument]:
        ids = list(counterpart_ids)
        if not ids:
            return {}
        cursor = self.collection.find({"owner_id": owner_id, "counterpart_id": {"$in": ids}})
        items = await cursor.to_list(length=len(ids))
        for it in items:
            it["_id"] = str(it["_id"])
        return {it["counterpart_id"]: it for it in items}

    async def list_for_owner(self, owner_id: str, types: Optional[List[str]] = None, limit: int = 100) -> List[InteractionDocument]:
        query: Dict[str, Any] = {"owner_id": owner_id}
        if types:
            query["type"] = {"$in": types}
        cursor = self.collection.find(query).sort("timestamp", DESCENDING).limit(limit)
        items = await cursor.to_list(length=limit)
        for it in items:
            it["_id"] = str(it.get("_id"))
        return items

    async def blocked_by(self, user_id: str) -> List[str]:
        # owners that have blocked user_id
        cursor = self.collection.find({"counterpart_id": user_id, "type": "block"})
        items = await cursor.to_list(length=1000)
        return [it["owner_id"] for it in items]

    async def save_report(self, reporter_id: str, reported_id: str, reason: str) -> str:
        doc: ReportDocument = {
            "reporter_id": reporter_id,
            "reported_id": reported_id,
            "reason": reason,
            "created_at": datetime.now(timezone.utc),
        }
        result = await self.reports.insert_one(doc)
        return str(result.inserted_id)
