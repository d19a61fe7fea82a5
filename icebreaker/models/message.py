from datetime import datetime
from typing import Literal, Optional, TypedDict


MessageKind = Literal["text", "icebreaker", "system"]


class MessageDocument(TypedDict, total=False):
    _id: str
    conversation_id: str
    sender_id: str
    receiver_id: str
    content: str
    kind: MessageKind
    timestamp: datetime
    # sending | sent | delivered | read | failed
    delivery_status: str
    client_message_id: Optional[str]
