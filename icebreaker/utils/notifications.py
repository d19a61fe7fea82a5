import asyncio
import logging
from typing import Dict, List

from pyfcm import FCMNotification

from icebreaker.config import get_settings


logger = logging.getLogger(__name__)


class NoopPush:

    enabled = False

    async def send_fcm(self, tokens: List[str], title: str, body: str, data: Dict[str, str] | None = None) -> None:
        return


class FcmPush:

    enabled = True

    def __init__(self, service_account_file: str, project_id: str | None = None) -> None:
        self._client = FCMNotification(service_account_file=service_account_file, project_id=project_id)

    async def send_fcm(self, tokens: List[str], title: str, body: str, data: Dict[str, str] | None = None) -> None:
        for token in tokens:
            # pyfcm is synchronous
            await asyncio.to_thread(
                self._client.notify,
                fcm_token=token,
                notification_title=title,
                notification_body=body,
                data_payload=data or {},
            )


_push = None


async def get_push():
    global _push
    if _push is not None:
        return _push
    settings = get_settings()
    if not settings.fcm_service_account_file:
        _push = NoopPush()
        return _push
    _push = FcmPush(settings.fcm_service_account_file, settings.fcm_project_id)
    return _push


async def notify_user(device_repo, user_id: str, title: str, body: str, data: Dict[str, str] | None = None) -> None:
    """Best-effort push; a failed push never fails the caller's operation."""
    push = await get_push()
    if not push.enabled:
        return
    tokens = await device_repo.get_tokens(user_id, platform="fcm")
    try:
        await push.send_fcm(tokens, title, body, data)
    except Exception:
        logger.warning("Push to %s failed", user_id, exc_info=True)
