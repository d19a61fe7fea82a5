from datetime import datetime
from typing import Optional, TypedDict


class InteractionDocument(TypedDict, total=False):
    _id: str
    # (owner_id, counterpart_id) is unique; the latest write wins
    owner_id: str
    counterpart_id: str
    type: str
    timestamp: datetime
    message: Optional[str]


class ReportDocument(TypedDict, total=False):
    _id: str
    reporter_id: str
    reported_id: str
    reason: str
    created_at: datetime
