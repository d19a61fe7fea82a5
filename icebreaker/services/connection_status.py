from typing import Optional

from icebreaker.schemas.interaction import ConnectionStatus, InteractionType


_STATUS_BY_TYPE = {
    InteractionType.WAVE: ConnectionStatus.WAVE_SENT,
    InteractionType.WAVE_RECEIVED: ConnectionStatus.WAVE_RECEIVED,
    InteractionType.INTRO_SENT: ConnectionStatus.INTRO_SENT,
    InteractionType.INTRO_RECEIVED: ConnectionStatus.INTRO_RECEIVED,
    InteractionType.CONVERSATION: ConnectionStatus.CONNECTED,
    InteractionType.PASS: ConnectionStatus.PASSED,
    InteractionType.BLOCK: ConnectionStatus.BLOCKED,
}

_CLOSED_TYPES = {InteractionType.PASS, InteractionType.BLOCK}


def resolve_connection_status(interaction_type: Optional[str]) -> ConnectionStatus:
    if interaction_type is None:
        return ConnectionStatus.NO_INTERACTION
    return _STATUS_BY_TYPE[InteractionType(interaction_type)]


def allows_interaction(interaction_type: Optional[str]) -> bool:
    if interaction_type is None:
        return True
    return InteractionType(interaction_type) not in _CLOSED_TYPES
