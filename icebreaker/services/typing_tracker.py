import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Set, Tuple


logger = logging.getLogger(__name__)

# (conversation_id, user_id, typing, audience)
TypingListener = Callable[[str, str, bool, List[str]], Awaitable[None]]


class TypingTracker:
    """Debounced typing state per conversation participant.

    A keystroke marks the participant as typing and (re)starts a timer; once
    the timer fires without another keystroke the participant reverts to not
    typing and the listener is told exactly once. ``audience`` is the list of
    users to tell, usually the other participants of the conversation.
    """

    def __init__(self, debounce_seconds: float = 1.0, listener: Optional[TypingListener] = None) -> None:
        self.debounce_seconds = debounce_seconds
        self._listener = listener
        self._typing: Dict[str, Set[str]] = {}
        self._audience: Dict[str, List[str]] = {}
        self._timers: Dict[Tuple[str, str], asyncio.TimerHandle] = {}
        self._pending: Set[asyncio.Task] = set()

    def set_listener(self, listener: Optional[TypingListener]) -> None:
        self._listener = listener

    def keystroke(self, conversation_id: str, user_id: str, audience: Sequence[str] = ()) -> None:
        if audience:
            self._audience[conversation_id] = list(audience)
        key = (conversation_id, user_id)
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()
        users = self._typing.setdefault(conversation_id, set())
        if user_id not in users:
            users.add(user_id)
            self._notify(conversation_id, user_id, True)
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(self.debounce_seconds, self._expire, conversation_id, user_id)

    def stop(self, conversation_id: str, user_id: str) -> None:
        handle = self._timers.pop((conversation_id, user_id), None)
        if handle is not None:
            handle.cancel()
        self._clear(conversation_id, user_id)

    def is_typing(self, conversation_id: str, user_id: str) -> bool:
        return user_id in self._typing.get(conversation_id, ())

    def typing_users(self, conversation_id: str) -> List[str]:
        return sorted(self._typing.get(conversation_id, ()))

    def is_other_user_typing(self, conversation_id: str, current_user_id: str) -> bool:
        return any(u != current_user_id for u in self._typing.get(conversation_id, ()))

    def forget(self, conversation_id: str) -> None:
        for key in [k for k in self._timers if k[0] == conversation_id]:
            self._timers.pop(key).cancel()
        self._typing.pop(conversation_id, None)
        self._audience.pop(conversation_id, None)

    def close(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._typing.clear()
        self._audience.clear()

    def _expire(self, conversation_id: str, user_id: str) -> None:
        self._timers.pop((conversation_id, user_id), None)
        self._clear(conversation_id, user_id)

    def _clear(self, conversation_id: str, user_id: str) -> None:
        users = self._typing.get(conversation_id)
        if not users or user_id not in users:
            return
        users.discard(user_id)
        self._notify(conversation_id, user_id, False)
        if not users:
            del self._typing[conversation_id]
            self._audience.pop(conversation_id, None)

    def _notify(self, conversation_id: str, user_id: str, typing: bool) -> None:
        if self._listener is None:
            return
        audience = [u for u in self._audience.get(conversation_id, []) if u != user_id]
        task = asyncio.get_running_loop().create_task(self._run_listener(conversation_id, user_id, typing, audience))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_listener(self, conversation_id: str, user_id: str, typing: bool, audience: List[str]) -> None:
        try:
            await self._listener(conversation_id, user_id, typing, audience)
        except Exception:
            logger.exception("Typing listener failed for conversation %s", conversation_id)
