from datetime import datetime
from typing import List, Optional, TypedDict


class ConversationDocument(TypedDict, total=False):
    _id: str
    # always two user ids, sorted
    participants: List[str]
    created_at: datetime
    last_message_at: datetime
    last_message_preview: Optional[str]
