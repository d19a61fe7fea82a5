from icebreaker.schemas.chat import DeliveryStatus


_PROGRESSION = [
    DeliveryStatus.SENDING,
    DeliveryStatus.SENT,
    DeliveryStatus.DELIVERED,
    DeliveryStatus.READ,
]

TERMINAL_STATUSES = frozenset({DeliveryStatus.READ, DeliveryStatus.FAILED})


def can_transition(current: DeliveryStatus, target: DeliveryStatus) -> bool:
    """Delivery status only moves forward; ``failed`` is reachable from any non-terminal state."""
    current = DeliveryStatus(current)
    target = DeliveryStatus(target)
    if current in TERMINAL_STATUSES:
        return False
    if target is DeliveryStatus.FAILED:
        return True
    return _PROGRESSION.index(target) > _PROGRESSION.index(current)


def sources_for(target: DeliveryStatus) -> list[str]:
    """Statuses a message may be in for a move to ``target`` to be accepted."""
    return [s.value for s in DeliveryStatus if can_transition(s, target)]
