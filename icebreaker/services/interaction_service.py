import logging
from typing import Any, Dict, List, Optional, Tuple

from icebreaker.errors import InvalidStateError, NotFoundError, PermissionDeniedError
from icebreaker.repositories.device_repository import DeviceRepository
from icebreaker.repositories.interaction_repository import InteractionRepository
from icebreaker.repositories.user_repository import UserRepository
from icebreaker.schemas.interaction import ConnectionStatus, InteractionType
from icebreaker.services.chat_service import ChatService
from icebreaker.services.connection_status import allows_interaction, resolve_connection_status
from icebreaker.utils.notifications import notify_user


logger = logging.getLogger(__name__)


class InteractionService:
    """Waves, intros, passes and blocks between the caller and a counterpart.

    Every write goes through the interaction store, which keeps only the
    latest interaction per (owner, counterpart) pair.
    """

    def __init__(
        self,
        interaction_repo: InteractionRepository,
        user_repo: UserRepository,
        chat_service: ChatService,
        device_repo: DeviceRepository | None = None,
    ) -> None:
        self._interaction_repo = interaction_repo
        self._user_repo = user_repo
        self._chat = chat_service
        self._device_repo = device_repo

    async def get_interaction(self, owner_id: str, counterpart_id: str) -> Optional[Dict[str, Any]]:
        return await self._interaction_repo.get(owner_id, counterpart_id)

    async def list_interactions(self, owner_id: str, types: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        return await self._interaction_repo.list_for_owner(owner_id, types=types)

    async def get_connection_status(self, owner_id: str, counterpart_id: str) -> ConnectionStatus:
        interaction = await self._interaction_repo.get(owner_id, counterpart_id)
        return resolve_connection_status(interaction["type"] if interaction else None)

    async def can_interact(self, owner_id: str, counterpart_id: str) -> bool:
        own = await self._interaction_repo.get(owner_id, counterpart_id)
        if not allows_interaction(own["type"] if own else None):
            return False
        theirs = await self._interaction_repo.get(counterpart_id, owner_id)
        return not (theirs and theirs["type"] == InteractionType.BLOCK.value)

    async def send_wave(self, owner_id: str, counterpart_id: str) -> Dict[str, Any]:
        owner, _ = await self._check_pair(owner_id, counterpart_id)
        await self._require_open(owner_id, counterpart_id)
        status = await self.get_connection_status(owner_id, counterpart_id)
        if status is ConnectionStatus.CONNECTED:
            raise InvalidStateError("You are already connected")
        record = await self._interaction_repo.record(owner_id, counterpart_id, InteractionType.WAVE.value)
        if await self._counterpart_closed(owner_id, counterpart_id):
            logger.info("Wave %s -> %s not delivered, counterpart passed", owner_id, counterpart_id)
            return record
        await self._interaction_repo.record(counterpart_id, owner_id, InteractionType.WAVE_RECEIVED.value)
        logger.info("Wave %s -> %s", owner_id, counterpart_id)
        await self._push(counterpart_id, "New wave 👋", f"{owner.get('first_name', 'Someone')} waved at you", {"type": "wave", "from": owner_id})
        return record

    async def accept_wave(self, owner_id: str, counterpart_id: str) -> Dict[str, Any]:
        owner, _ = await self._check_pair(owner_id, counterpart_id)
        own = await self._interaction_repo.get(owner_id, counterpart_id)
        if not own or own["type"] != InteractionType.WAVE_RECEIVED.value:
            raise InvalidStateError("No wave to accept")
        await self._require_open(owner_id, counterpart_id)
        convo = await self._connect(owner_id, counterpart_id)
        await self._push(counterpart_id, "Wave accepted", f"{owner.get('first_name', 'Someone')} waved back. Start chatting!", {"type": "match_accepted", "conversation_id": convo["_id"]})
        return convo

    async def send_intro(self, owner_id: str, counterpart_id: str, message: str) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
        """Record an intro and open the chat with it as the first message.

        When the counterpart has already passed, only the sender side is kept
        and ``(None, None)`` is returned.
        """
        if not message or not message.strip():
            raise ValueError("Intro message cannot be empty")
        owner, _ = await self._check_pair(owner_id, counterpart_id)
        await self._require_open(owner_id, counterpart_id)
        status = await self.get_connection_status(owner_id, counterpart_id)
        if status is ConnectionStatus.CONNECTED:
            raise InvalidStateError("You are already connected")
        text = message.strip()
        await self._interaction_repo.record(owner_id, counterpart_id, InteractionType.INTRO_SENT.value, message=text)
        if await self._counterpart_closed(owner_id, counterpart_id):
            logger.info("Intro %s -> %s not delivered, counterpart passed", owner_id, counterpart_id)
            return None, None
        await self._interaction_repo.record(counterpart_id, owner_id, InteractionType.INTRO_RECEIVED.value, message=text)
        convo = await self._chat_conversation(owner_id, counterpart_id)
        stored = await self._chat.post_message(convo["_id"], owner_id, counterpart_id, text, kind="icebreaker")
        logger.info("Intro %s -> %s", owner_id, counterpart_id)
        await self._push(counterpart_id, "New intro", f"{owner.get('first_name', 'Someone')}: {text[:100]}", {"type": "intro", "from": owner_id, "conversation_id": convo["_id"]})
        return convo, stored

    async def accept_intro(self, owner_id: str, counterpart_id: str) -> Dict[str, Any]:
        owner, _ = await self._check_pair(owner_id, counterpart_id)
        own = await self._interaction_repo.get(owner_id, counterpart_id)
        if not own or own["type"] != InteractionType.INTRO_RECEIVED.value:
            raise InvalidStateError("No intro to accept")
        await self._require_open(owner_id, counterpart_id)
        convo = await self._connect(owner_id, counterpart_id)
        await self._push(counterpart_id, "Intro accepted", f"{owner.get('first_name', 'Someone')} replied to your intro", {"type": "match_accepted", "conversation_id": convo["_id"]})
        return convo

    async def pass_match(self, owner_id: str, counterpart_id: str) -> Dict[str, Any]:
        await self._check_pair(owner_id, counterpart_id)
        return await self._interaction_repo.record(owner_id, counterpart_id, InteractionType.PASS.value)

    async def block_match(self, owner_id: str, counterpart_id: str) -> Dict[str, Any]:
        await self._check_pair(owner_id, counterpart_id)
        logger.info("User %s blocked %s", owner_id, counterpart_id)
        return await self._interaction_repo.record(owner_id, counterpart_id, InteractionType.BLOCK.value)

    async def report_match(self, owner_id: str, counterpart_id: str, reason: str) -> str:
        if not reason or not reason.strip():
            raise ValueError("Report reason cannot be empty")
        await self._check_pair(owner_id, counterpart_id)
        report_id = await self._interaction_repo.save_report(owner_id, counterpart_id, reason.strip())
        logger.warning("User %s reported %s (report %s)", owner_id, counterpart_id, report_id)
        return report_id

    async def _connect(self, owner_id: str, counterpart_id: str) -> Dict[str, Any]:
        await self._interaction_repo.record(owner_id, counterpart_id, InteractionType.CONVERSATION.value)
        await self._interaction_repo.record(counterpart_id, owner_id, InteractionType.CONVERSATION.value)
        logger.info("Connected %s <-> %s", owner_id, counterpart_id)
        return await self._chat_conversation(owner_id, counterpart_id)

    async def _chat_conversation(self, owner_id: str, counterpart_id: str) -> Dict[str, Any]:
        return await self._chat.open_conversation(owner_id, counterpart_id)

    async def _check_pair(self, owner_id: str, counterpart_id: str) -> Tuple[dict, dict]:
        if owner_id == counterpart_id:
            raise ValueError("Cannot interact with yourself")
        owner = await self._user_repo.get_user_by_id(owner_id)
        counterpart = await self._user_repo.get_user_by_id(counterpart_id)
        if not owner or not counterpart:
            raise NotFoundError("User not found")
        return owner, counterpart

    async def _counterpart_closed(self, owner_id: str, counterpart_id: str) -> bool:
        # a counterpart's pass or block is never overwritten by an incoming wave or intro
        theirs = await self._interaction_repo.get(counterpart_id, owner_id)
        return theirs is not None and not allows_interaction(theirs["type"])

    async def _require_open(self, owner_id: str, counterpart_id: str) -> None:
        if not await self.can_interact(owner_id, counterpart_id):
            raise PermissionDeniedError("You can no longer interact with this person")

    async def _push(self, user_id: str, title: str, body: str, data: Dict[str, str]) -> None:
        if self._device_repo is not None:
            await notify_user(self._device_repo, user_id, title, body, data)
