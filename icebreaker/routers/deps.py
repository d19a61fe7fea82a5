import logging
from typing import List

from fastapi import Depends

from icebreaker.config import get_settings
from icebreaker.database.connection import mongo_db_dependency
from icebreaker.repositories.conversation_repository import ConversationRepository
from icebreaker.repositories.device_repository import DeviceRepository
from icebreaker.repositories.interaction_repository import InteractionRepository
from icebreaker.repositories.message_repository import MessageRepository
from icebreaker.repositories.user_repository import UserRepository
from icebreaker.services.ai_service import AIService, get_ai_service
from icebreaker.services.chat_service import ChatService
from icebreaker.services.interaction_service import InteractionService
from icebreaker.services.match_service import MatchService
from icebreaker.services.typing_tracker import TypingTracker
from icebreaker.services.user_service import UserService
from icebreaker.utils.websocket_manager import manager


logger = logging.getLogger(__name__)


async def _fanout_typing(conversation_id: str, user_id: str, typing: bool, audience: List[str]) -> None:
    event = {"type": "typing_start" if typing else "typing_stop", "conversation_id": conversation_id, "from": user_id}
    for receiver_id in audience:
        await manager.send_event(receiver_id, event)


typing_tracker = TypingTracker(get_settings().typing_debounce_seconds, listener=_fanout_typing)


def get_chat_service(db = Depends(mongo_db_dependency)) -> ChatService:
    return ChatService(MessageRepository(db), ConversationRepository(db), InteractionRepository(db), typing_tracker)


def get_interaction_service(db = Depends(mongo_db_dependency), chat: ChatService = Depends(get_chat_service)) -> InteractionService:
    return InteractionService(InteractionRepository(db), UserRepository(db), chat, DeviceRepository(db))


def get_user_service(db = Depends(mongo_db_dependency)) -> UserService:
    return UserService(UserRepository(db))


def get_ai() -> AIService:
    return get_ai_service()


def get_match_service(db = Depends(mongo_db_dependency), ai: AIService = Depends(get_ai)) -> MatchService:
    return MatchService(UserRepository(db), InteractionRepository(db), ai, get_settings())
