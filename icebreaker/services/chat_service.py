import logging
from typing import Any, Dict, List, Optional, Tuple

from icebreaker.errors import IcebreakerError, InvalidStateError, NotFoundError, PermissionDeniedError
from icebreaker.repositories.conversation_repository import ConversationRepository
from icebreaker.repositories.interaction_repository import InteractionRepository
from icebreaker.repositories.message_repository import UNREAD_STATUSES, MessageRepository
from icebreaker.schemas.chat import DeliveryStatus
from icebreaker.schemas.interaction import InteractionType
from icebreaker.services.delivery import sources_for
from icebreaker.services.suggestions import contextual_replies
from icebreaker.services.typing_tracker import TypingTracker
from icebreaker.utils.cursors import object_id


logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


class ChatService:

    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        interaction_repo: InteractionRepository,
        typing: TypingTracker,
    ) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._interaction_repo = interaction_repo
        self._typing = typing

    async def send_message(self, sender_id: str, receiver_id: str, content: str, client_message_id: str | None = None) -> Dict[str, Any]:
        if not content or not content.strip():
            raise ValueError("Message content cannot be empty")
        if sender_id == receiver_id:
            raise ValueError("Cannot message yourself")
        own = await self._interaction_repo.get(sender_id, receiver_id)
        if not own or own["type"] != InteractionType.CONVERSATION.value:
            raise InvalidStateError("You can only message people you are connected with")
        theirs = await self._interaction_repo.get(receiver_id, sender_id)
        if theirs and theirs["type"] == InteractionType.BLOCK.value:
            raise PermissionDeniedError("This person is not accepting messages")
        convo = await self._conversation_repo.get_or_create_one_to_one(sender_id, receiver_id)
        return await self.post_message(convo["_id"], sender_id, receiver_id, content, client_message_id=client_message_id)

    async def post_message(
        self,
        conversation_id: str,
        sender_id: str,
        receiver_id: str,
        content: str,
        kind: str = "text",
        client_message_id: str | None = None,
    ) -> Dict[str, Any]:
        """Store a message and advance it from sending to sent."""
        self._typing.stop(conversation_id, sender_id)
        saved = await self._message_repo.save_message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content.strip(),
            kind=kind,
            client_message_id=client_message_id,
        )
        stored = await self._message_repo.set_status(saved["_id"], DeliveryStatus.SENT.value, sources_for(DeliveryStatus.SENT))
        await self._conversation_repo.update_on_new_message(conversation_id, content.strip()[:PREVIEW_LENGTH])
        return stored or saved

    async def open_conversation(self, user_a: str, user_b: str) -> Dict[str, Any]:
        return await self._conversation_repo.get_or_create_one_to_one(user_a, user_b)

    async def get_conversation_for(self, conversation_id: str, user_id: str) -> Dict[str, Any]:
        convo = await self._conversation_repo.get(conversation_id)
        if not convo or user_id not in convo.get("participants", []):
            raise NotFoundError("Conversation not found")
        return convo

    async def get_history(self, conversation_id: str, user_id: str, limit: int = 50, cursor: str | None = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        await self.get_conversation_for(conversation_id, user_id)
        return await self._message_repo.get_messages_by_conversation(conversation_id, limit=limit, cursor=cursor)

    async def list_conversations(self, user_id: str, limit: int = 20, cursor: str | None = None) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        items, next_cursor = await self._conversation_repo.list_for_user(user_id, limit=limit, cursor=cursor)
        for it in items:
            it["unread_count"] = await self._message_repo.count_unread(user_id, conversation_id=it["_id"])
            it["typing_users"] = [u for u in self._typing.typing_users(it["_id"]) if u != user_id]
        return items, next_cursor

    async def delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        await self.get_conversation_for(conversation_id, user_id)
        removed = await self._message_repo.delete_for_conversation(conversation_id)
        self._typing.forget(conversation_id)
        logger.info("Conversation %s deleted by %s (%d messages)", conversation_id, user_id, removed)
        return await self._conversation_repo.delete(conversation_id)

    async def unread_count(self, conversation_id: str, user_id: str) -> int:
        return await self._message_repo.count_unread(user_id, conversation_id=conversation_id)

    async def total_unread(self, user_id: str) -> int:
        return await self._message_repo.count_unread(user_id)

    async def get_unread(self, user_id: str, from_user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return await self._message_repo.get_unread(user_id, from_user_id)

    async def missed_since(self, user_id: str, since_ms: int) -> List[Dict[str, Any]]:
        """Messages addressed to ``user_id`` after ``since_ms``, oldest first."""
        return await self._message_repo.get_for_receiver_since(user_id, since_ms)

    async def mark_read(self, conversation_id: str, reader_id: str) -> List[Dict[str, Any]]:
        """Mark every message the other participant sent in the conversation as read.

        Only messages that reached the reader (``sent`` or ``delivered``) move;
        returns the messages that changed.
        """
        await self.get_conversation_for(conversation_id, reader_id)
        return await self._message_repo.set_status_many(
            {"conversation_id": conversation_id, "receiver_id": reader_id},
            DeliveryStatus.READ.value,
            UNREAD_STATUSES,
        )

    async def mark_read_from(self, reader_id: str, from_user_id: str) -> List[Dict[str, Any]]:
        convo = await self._conversation_repo.find_one_to_one(reader_id, from_user_id)
        if not convo:
            return []
        return await self.mark_read(convo["_id"], reader_id)

    async def mark_delivered_for_receiver(
        self,
        conversation_id: str,
        receiver_id: str,
        message_ids: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Advance ``sent`` messages to ``receiver_id`` to delivered; returns the moved messages.

        ``message_ids`` narrows the move to messages that were actually pushed.
        """
        query: Dict[str, Any] = {"conversation_id": conversation_id, "receiver_id": receiver_id}
        if message_ids is not None:
            query["_id"] = {"$in": [oid for oid in map(object_id, message_ids) if oid is not None]}
        return await self._message_repo.set_status_many(query, DeliveryStatus.DELIVERED.value, [DeliveryStatus.SENT.value])

    async def mark_message_delivered(self, message_id: str, receiver_id: str) -> Optional[Dict[str, Any]]:
        return await self._advance(message_id, DeliveryStatus.DELIVERED, receiver_id=receiver_id)

    async def mark_message_read(self, message_id: str, receiver_id: str) -> Optional[Dict[str, Any]]:
        return await self._advance(message_id, DeliveryStatus.READ, receiver_id=receiver_id)

    async def mark_message_failed(self, message_id: str, sender_id: str) -> Optional[Dict[str, Any]]:
        return await self._advance(message_id, DeliveryStatus.FAILED, sender_id=sender_id)

    async def _advance(self, message_id: str, target: DeliveryStatus, receiver_id: str | None = None, sender_id: str | None = None) -> Optional[Dict[str, Any]]:
        message = await self._message_repo.get(message_id)
        if not message:
            raise NotFoundError("Message not found")
        if receiver_id is not None and message["receiver_id"] != receiver_id:
            raise PermissionDeniedError("Only the receiver can acknowledge a message")
        if sender_id is not None and message["sender_id"] != sender_id:
            raise PermissionDeniedError("Only the sender can fail a message")
        updated = await self._message_repo.set_status(message_id, target.value, sources_for(target))
        if updated is None:
            logger.debug("Ignored %s -> %s for message %s", message["delivery_status"], target.value, message_id)
        return updated

    async def keystroke(self, conversation_id: str, user_id: str) -> None:
        convo = await self.get_conversation_for(conversation_id, user_id)
        self._typing.keystroke(conversation_id, user_id, audience=convo["participants"])

    async def stop_typing(self, conversation_id: str, user_id: str) -> None:
        await self.get_conversation_for(conversation_id, user_id)
        self._typing.stop(conversation_id, user_id)

    def typing_users(self, conversation_id: str) -> List[str]:
        return self._typing.typing_users(conversation_id)

    async def suggestions(self, conversation_id: str, user_id: str, ai_service=None) -> List[str]:
        await self.get_conversation_for(conversation_id, user_id)
        last = await self._message_repo.get_last_message(conversation_id)
        last_text = last["content"] if last else None
        if ai_service is not None and ai_service.configured and last_text:
            try:
                suggested = await ai_service.suggest_replies(last_text)
            except IcebreakerError:
                logger.warning("AI reply suggestions failed, using keyword replies", exc_info=True)
            else:
                if suggested:
                    return suggested
        return contextual_replies(last_text)
