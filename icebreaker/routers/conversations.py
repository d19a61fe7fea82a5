from typing import Optional

from fastapi import APIRouter, Depends, Query

from icebreaker.routers.chat import announce_status
from icebreaker.routers.deps import get_ai, get_chat_service
from icebreaker.schemas.chat import SuggestionsPublic, conversation_public, message_public
from icebreaker.services.ai_service import AIService
from icebreaker.services.chat_service import ChatService
from icebreaker.utils.dependencies import get_current_user


router = APIRouter(prefix="/conversations", tags=["chat"])


@router.get("")
async def list_conversations(limit: int = Query(20, ge=1, le=100), cursor: Optional[str] = None, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    items, next_cursor = await service.list_conversations(current_user["_id"], limit=limit, cursor=cursor)
    return {"items": [conversation_public(it) for it in items], "next_cursor": next_cursor}


@router.get("/unread")
async def total_unread(current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return {"unread_count": await service.total_unread(current_user["_id"])}


@router.get("/{conversation_id}/messages")
async def list_messages(conversation_id: str, limit: int = Query(50, ge=1, le=200), cursor: Optional[str] = None, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    messages, next_cursor = await service.get_history(conversation_id, current_user["_id"], limit=limit, cursor=cursor)
    return {"items": [message_public(m) for m in messages], "next_cursor": next_cursor}


@router.post("/{conversation_id}/read")
async def mark_read(conversation_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    updated = await service.mark_read(conversation_id, current_user["_id"])
    await announce_status(updated)
    return {"updated": len(updated), "unread_count": await service.unread_count(conversation_id, current_user["_id"])}


@router.post("/{conversation_id}/typing")
async def typing(conversation_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    await service.keystroke(conversation_id, current_user["_id"])
    return {"typing_users": service.typing_users(conversation_id)}


@router.delete("/{conversation_id}/typing")
async def stop_typing(conversation_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    await service.stop_typing(conversation_id, current_user["_id"])
    return {"typing_users": service.typing_users(conversation_id)}


@router.get("/{conversation_id}/suggestions", response_model=SuggestionsPublic)
async def suggestions(conversation_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service), ai: AIService = Depends(get_ai)):
    replies = await service.suggestions(conversation_id, current_user["_id"], ai_service=ai)
    return SuggestionsPublic(conversation_id=conversation_id, suggestions=replies)


@router.delete("/{conversation_id}")
async def delete_conversation(conversation_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    await service.delete_conversation(conversation_id, current_user["_id"])
    return {"msg": "Conversation deleted"}
