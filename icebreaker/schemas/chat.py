from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class DeliveryStatus(str, Enum):
    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class MessagePublic(BaseModel):

    id: str
    conversation_id: str
    sender_id: str
    receiver_id: str
    content: str
    kind: str = "text"
    timestamp: datetime
    delivery_status: DeliveryStatus
    client_message_id: Optional[str] = None


class SendMessageRequest(BaseModel):

    content: str = Field(min_length=1, max_length=4000)
    client_message_id: Optional[str] = None


class MarkReadRequest(BaseModel):

    conversation_id: str


class ConversationPublic(BaseModel):

    id: str
    participants: List[str]
    last_message_at: datetime
    last_message_preview: Optional[str] = None
    unread_count: int = 0
    typing_users: List[str] = []


class SuggestionsPublic(BaseModel):

    conversation_id: str
    suggestions: List[str]


def message_public(doc: dict) -> MessagePublic:
    return MessagePublic(
        id=doc["_id"],
        conversation_id=doc["conversation_id"],
        sender_id=doc["sender_id"],
        receiver_id=doc["receiver_id"],
        content=doc["content"],
        kind=doc.get("kind", "text"),
        timestamp=doc["timestamp"],
        delivery_status=doc["delivery_status"],
        client_message_id=doc.get("client_message_id"),
    )


def conversation_public(doc: dict) -> ConversationPublic:
    return ConversationPublic(
        id=doc["_id"],
        participants=doc["participants"],
        last_message_at=doc["last_message_at"],
        last_message_preview=doc.get("last_message_preview"),
        unread_count=doc.get("unread_count", 0),
        typing_users=doc.get("typing_users", []),
    )
