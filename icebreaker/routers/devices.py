from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from icebreaker.database.connection import mongo_db_dependency
from icebreaker.repositories.device_repository import DeviceRepository
from icebreaker.utils.dependencies import get_current_user


router = APIRouter(prefix="/devices", tags=["push"])


class DeviceIn(BaseModel):

    platform: Literal["fcm", "webpush"] = "fcm"
    token: str = Field(min_length=1)


@router.post("/register")
async def register_device(payload: DeviceIn, current_user: dict = Depends(get_current_user), db = Depends(mongo_db_dependency)):
    doc = await DeviceRepository(db).register(current_user["_id"], payload.platform, payload.token)
    return {"ok": True, "device": {"platform": doc["platform"], "token": doc["token"]}}


@router.delete("/{token}")
async def unregister_device(token: str, current_user: dict = Depends(get_current_user), db = Depends(mongo_db_dependency)):
    removed = await DeviceRepository(db).unregister(current_user["_id"], token)
    return {"ok": removed}
