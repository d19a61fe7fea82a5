from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from icebreaker.routers.deps import get_interaction_service
from icebreaker.schemas.chat import conversation_public, message_public
from icebreaker.schemas.interaction import ConnectionStatusPublic, IntroRequest, InteractionType, ReportRequest, interaction_public
from icebreaker.services.interaction_service import InteractionService
from icebreaker.utils.dependencies import get_current_user
from icebreaker.utils.websocket_manager import manager


router = APIRouter(prefix="/interactions", tags=["interactions"])


@router.get("")
async def list_interactions(type: Optional[List[InteractionType]] = Query(None), current_user: dict = Depends(get_current_user), service: InteractionService = Depends(get_interaction_service)):
    types = [t.value for t in type] if type else None
    items = await service.list_interactions(current_user["_id"], types=types)
    return {"items": [interaction_public(it) for it in items]}


@router.get("/{user_id}/status", response_model=ConnectionStatusPublic)
async def connection_status(user_id: str, current_user: dict = Depends(get_current_user), service: InteractionService = Depends(get_interaction_service)):
    status = await service.get_connection_status(current_user["_id"], user_id)
    can_interact = await service.can_interact(current_user["_id"], user_id)
    return ConnectionStatusPublic(user_id=user_id, status=status, can_interact=can_interact)


@router.post("/{user_id}/wave")
async def send_wave(user_id: str, current_user: dict = Depends(get_current_user), service: InteractionService = Depends(get_interaction_service)):
    record = await service.send_wave(current_user["_id"], user_id)
    theirs = await service.get_interaction(user_id, current_user["_id"])
    if theirs and theirs["type"] == InteractionType.WAVE_RECEIVED.value:
        await manager.send_event(user_id, {"type": "wave", "from": current_user["_id"]})
    return {"interaction": interaction_public(record)}


@router.post("/{user_id}/wave/accept")
async def accept_wave(user_id: str, current_user: dict = Depends(get_current_user), service: InteractionService = Depends(get_interaction_service)):
    convo = await service.accept_wave(current_user["_id"], user_id)
    await manager.send_event(user_id, {"type": "connected", "from": current_user["_id"], "conversation_id": convo["_id"]})
    return {"conversation": conversation_public(convo)}


@router.post("/{user_id}/intro")
async def send_intro(user_id: str, body: IntroRequest, current_user: dict = Depends(get_current_user), service: InteractionService = Depends(get_interaction_service)):
    convo, stored = await service.send_intro(current_user["_id"], user_id, body.message)
    if stored is None:
        return {"conversation": None, "message": None}
    await manager.send_event(user_id, {"type": "intro", "from": current_user["_id"], "message": message_public(stored).model_dump(mode="json")})
    return {"conversation": conversation_public(convo), "message": message_public(stored)}


@router.post("/{user_id}/intro/accept")
async def accept_intro(user_id: str, current_user: dict = Depends(get_current_user), service: InteractionService = Depends(get_interaction_service)):
    convo = await service.accept_intro(current_user["_id"], user_id)
    await manager.send_event(user_id, {"type": "connected", "from": current_user["_id"], "conversation_id": convo["_id"]})
    return {"conversation": conversation_public(convo)}


@router.post("/{user_id}/pass")
async def pass_match(user_id: str, current_user: dict = Depends(get_current_user), service: InteractionService = Depends(get_interaction_service)):
    record = await service.pass_match(current_user["_id"], user_id)
    return {"interaction": interaction_public(record)}


@router.post("/{user_id}/block")
async def block_match(user_id: str, current_user: dict = Depends(get_current_user), service: InteractionService = Depends(get_interaction_service)):
    record = await service.block_match(current_user["_id"], user_id)
    return {"interaction": interaction_public(record)}


@router.post("/{user_id}/report")
async def report_match(user_id: str, body: ReportRequest, current_user: dict = Depends(get_current_user), service: InteractionService = Depends(get_interaction_service)):
    report_id = await service.report_match(current_user["_id"], user_id, body.reason)
    return {"report_id": report_id}
