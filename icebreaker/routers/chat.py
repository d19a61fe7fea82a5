import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from icebreaker.database.connection import mongo_db_dependency
from icebreaker.errors import AuthError, IcebreakerError
from icebreaker.repositories.device_repository import DeviceRepository
from icebreaker.routers.deps import get_chat_service, get_user_service
from icebreaker.schemas.chat import MarkReadRequest, MessagePublic, SendMessageRequest, message_public
from icebreaker.services.chat_service import ChatService
from icebreaker.services.user_service import UserService
from icebreaker.utils.dependencies import get_current_user
from icebreaker.utils.notifications import notify_user
from icebreaker.utils.realtime_bus import PRESENCE_TTL_SECONDS, get_bus
from icebreaker.utils.security import decode_access_token
from icebreaker.utils.websocket_manager import manager


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["chat"])


def _message_event(doc: dict) -> Dict[str, Any]:
    return {"type": "message", "message": message_public(doc).model_dump(mode="json")}


def _status_event(doc: dict) -> Dict[str, Any]:
    return {
        "type": "status",
        "message_id": doc["_id"],
        "conversation_id": doc["conversation_id"],
        "delivery_status": doc["delivery_status"],
    }


async def announce_status(docs: List[dict]) -> None:
    """Tell each sender that their message moved to a new delivery status."""
    for doc in docs:
        await manager.send_event(doc["sender_id"], _status_event(doc))


async def deliver(service: ChatService, devices: DeviceRepository, stored: dict, sender_name: str = "New message") -> dict:
    """Push a stored message to the receiver and advance it to delivered when they are reachable."""
    receiver_id = stored["receiver_id"]
    reachable = await manager.send_event(receiver_id, _message_event(stored))
    if reachable:
        delivered = await service.mark_message_delivered(stored["_id"], receiver_id)
        if delivered is not None:
            stored = delivered
    else:
        await notify_user(
            devices,
            receiver_id,
            title=sender_name,
            body=stored["content"][:100],
            data={"conversation_id": stored["conversation_id"], "message_id": stored["_id"], "from": stored["sender_id"]},
        )
    return stored


async def replay_missed(websocket: WebSocket, user_id: str, service: ChatService, since_ms: int) -> List[dict]:
    """Push messages sent while the user was away, then advance them to delivered."""
    missed = await service.missed_since(user_id, since_ms)
    by_conversation: Dict[str, List[str]] = {}
    for doc in missed:
        await websocket.send_text(json.dumps(_message_event(doc)))
        by_conversation.setdefault(doc["conversation_id"], []).append(doc["_id"])
    delivered: List[dict] = []
    for conversation_id, message_ids in by_conversation.items():
        delivered.extend(await service.mark_delivered_for_receiver(conversation_id, user_id, message_ids))
    await announce_status(delivered)
    return delivered


async def _handle_event(websocket: WebSocket, user_id: str, msg: Dict[str, Any], service: ChatService, devices: DeviceRepository) -> None:
    kind = msg.get("type", "message")

    if kind == "typing":
        await service.keystroke(msg["conversation_id"], user_id)
        return

    if kind == "typing_stop":
        await service.stop_typing(msg["conversation_id"], user_id)
        return

    if kind == "delivered":
        updated = await service.mark_message_delivered(msg["message_id"], user_id)
        if updated is not None:
            await manager.send_event(updated["sender_id"], _status_event(updated))
        return

    if kind in ("seen", "read"):
        updated = await service.mark_message_read(msg["message_id"], user_id)
        if updated is not None:
            await manager.send_event(updated["sender_id"], _status_event(updated))
        return

    if kind == "read_all":
        updated = await service.mark_read(msg["conversation_id"], user_id)
        await websocket.send_text(json.dumps({"type": "read_all", "conversation_id": msg["conversation_id"], "updated": len(updated)}))
        await announce_status(updated)
        return

    if kind == "failed":
        updated = await service.mark_message_failed(msg["message_id"], user_id)
        if updated is not None:
            await websocket.send_text(json.dumps(_status_event(updated), default=str))
        return

    if kind != "message" or not all(k in msg for k in ("to", "content")):
        await websocket.send_text(json.dumps({"type": "error", "detail": "Invalid message payload"}))
        return

    stored = await service.send_message(user_id, msg["to"], msg["content"], msg.get("client_message_id"))
    stored = await deliver(service, devices, stored)
    await websocket.send_text(json.dumps({"type": "ack", "message": message_public(stored).model_dump(mode="json")}))


@router.websocket("/ws/chat/{user_id}")
async def chat_socket(
    websocket: WebSocket,
    user_id: str,
    service: ChatService = Depends(get_chat_service),
    users: UserService = Depends(get_user_service),
    db = Depends(mongo_db_dependency),
):
    # JWT over the query string: ?token=...
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4401)
        return
    try:
        payload = decode_access_token(token)
    except AuthError:
        await websocket.close(code=4401)
        return
    if payload.get("sub") != user_id:
        await websocket.close(code=4403)
        return

    devices = DeviceRepository(db)
    await manager.connect(user_id, websocket)
    await users.set_online(user_id, True)
    bus = await get_bus()
    subscriber = None
    tasks = []
    if bus.enabled:
        subscriber = await bus.subscribe(f"user:{user_id}", websocket.send_text)
        tasks.append(asyncio.create_task(subscriber.run()))

        async def _presence_heartbeat():
            while True:
                await bus.set_presence(user_id, ttl_seconds=PRESENCE_TTL_SECONDS)
                await asyncio.sleep(PRESENCE_TTL_SECONDS / 2)

        tasks.append(asyncio.create_task(_presence_heartbeat()))

    resume_since = websocket.query_params.get("resume_since")
    if resume_since and resume_since.isdigit():
        await replay_missed(websocket, user_id, service, int(resume_since))

    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_text(json.dumps({"type": "error", "detail": "Invalid JSON"}))
                continue
            try:
                await _handle_event(websocket, user_id, msg, service, devices)
            except IcebreakerError as exc:
                await websocket.send_text(json.dumps({"type": "error", "detail": exc.user_message, "status_code": exc.status_code}))
            except (KeyError, ValueError) as exc:
                await websocket.send_text(json.dumps({"type": "error", "detail": str(exc)}))
    except WebSocketDisconnect:
        logger.debug("Socket closed for %s", user_id)
    finally:
        manager.disconnect(user_id, websocket)
        for task in tasks:
            task.cancel()
        if subscriber is not None:
            await subscriber.cancel()
        if not manager.is_connected(user_id):
            await bus.clear_presence(user_id)
            await users.set_online(user_id, False)


@router.post("/send/{receiver_id}", response_model=MessagePublic)
async def send_message(
    receiver_id: str,
    body: SendMessageRequest,
    current_user: dict = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
    db = Depends(mongo_db_dependency),
):
    stored = await service.send_message(current_user["_id"], receiver_id, body.content, body.client_message_id)
    stored = await deliver(service, DeviceRepository(db), stored, sender_name=current_user.get("first_name") or "New message")
    return message_public(stored)


@router.get("/unread")
async def get_unread(from_user_id: Optional[str] = None, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    messages = await service.get_unread(current_user["_id"], from_user_id)
    return {"messages": [message_public(m) for m in messages], "total": await service.total_unread(current_user["_id"])}


@router.post("/mark_read")
async def mark_read(body: MarkReadRequest, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    updated = await service.mark_read(body.conversation_id, current_user["_id"])
    await announce_status(updated)
    return {"updated": len(updated)}


@router.post("/{message_id}/delivered", response_model=Optional[MessagePublic])
async def mark_delivered(message_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    updated = await service.mark_message_delivered(message_id, current_user["_id"])
    if updated is None:
        return None
    await manager.send_event(updated["sender_id"], _status_event(updated))
    return message_public(updated)


@router.post("/{message_id}/read", response_model=Optional[MessagePublic])
async def mark_message_read(message_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    updated = await service.mark_message_read(message_id, current_user["_id"])
    if updated is None:
        return None
    await manager.send_event(updated["sender_id"], _status_event(updated))
    return message_public(updated)


@router.post("/{message_id}/failed", response_model=Optional[MessagePublic])
async def mark_failed(message_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    updated = await service.mark_message_failed(message_id, current_user["_id"])
    return message_public(updated) if updated is not None else None
