from datetime import datetime, timezone
from typing import Any, Dict, List

from motor.motor_asyncio import AsyncIOMotorDatabase

from icebreaker.models.device import DeviceDocument, PushPlatform


class DeviceRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["devices"]

    async def register(self, user_id: str, platform: PushPlatform, token: str) -> DeviceDocument:
        now = datetime.now(timezone.utc)
        # a token belongs to the last user that registered it
        await self.collection.delete_many({"platform": platform, "token": token, "user_id": {"$ne": user_id}})
        await self.collection.update_one(
            {"user_id": user_id, "platform": platform, "token": token},
            {"$set": {"last_seen_at": now}, "$setOnInsert": {"registered_at": now}},
            upsert=True,
        )
        return DeviceDocument(user_id=user_id, platform=platform, token=token, last_seen_at=now)

    async def unregister(self, user_id: str, token: str) -> bool:
        result = await self.collection.delete_many({"user_id": user_id, "token": token})
        return result.deleted_count > 0

    async def get_tokens(self, user_id: str, platform: str | None = None) -> List[str]:
        query: Dict[str, Any] = {"user_id": user_id}
        if platform:
            query["platform"] = platform
        items = await self.collection.find(query).to_list(length=100)
        return [it["token"] for it in items]
