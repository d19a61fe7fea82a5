from fastapi import APIRouter, Depends

from icebreaker.routers.deps import get_user_service
from icebreaker.services.user_service import UserService
from icebreaker.utils.dependencies import get_current_user
from icebreaker.utils.realtime_bus import get_bus
from icebreaker.utils.websocket_manager import manager


router = APIRouter(prefix="/presence", tags=["chat"])


@router.get("/{user_id}")
async def presence(user_id: str, current_user: dict = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    """Online status of a user.

    With Redis the presence key is authoritative across workers; otherwise
    only sockets held by this process are known.
    """
    user = await service.get_user(user_id)
    bus = await get_bus()
    online = await bus.is_online(user_id)
    if online is None:
        online = manager.is_connected(user_id)
    return {"user_id": user_id, "online": bool(online), "last_seen": user.get("last_seen")}
