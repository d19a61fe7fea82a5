import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from icebreaker.errors import AuthError, InvalidStateError, NotFoundError
from icebreaker.repositories.user_repository import UserRepository
from icebreaker.schemas.user import AIAnswerIn, LocationUpdate, ProfileUpdate, UserCreate
from icebreaker.utils.security import hash_password, verify_password


class UserService:
    """Accounts, profiles and the answers used for matching."""

    def __init__(self, user_repository: UserRepository):
        self.user_repository = user_repository

    async def register_user(self, payload: UserCreate) -> dict:
        existing = await self.user_repository.get_user_by_email(payload.email)
        if existing:
            raise InvalidStateError("Email already registered")
        new_id = await self.user_repository.create_user(
            email=payload.email,
            hashed_password=hash_password(payload.password),
            profile=payload.model_dump(exclude={"email", "password"}),
        )
        return await self.get_user(new_id)

    async def authenticate_user(self, email: str, password: str) -> dict:
        user = await self.user_repository.get_user_by_email(email)
        if not user or not verify_password(password, user.get("hashed_password", "")):
            raise AuthError("Incorrect email or password")
        return user

    async def get_user(self, user_id: str) -> dict:
        # always a fresh copy from the store
        user = await self.user_repository.get_user_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def update_profile(self, user_id: str, payload: ProfileUpdate) -> dict:
        fields = payload.model_dump(exclude_none=True)
        if fields:
            await self.user_repository.update_fields(user_id, fields)
        return await self.get_user(user_id)

    async def update_location(self, user_id: str, payload: LocationUpdate) -> dict:
        await self.user_repository.update_fields(user_id, {"latitude": payload.latitude, "longitude": payload.longitude})
        return await self.get_user(user_id)

    async def set_visibility(self, user_id: str, is_visible: bool) -> dict:
        await self.user_repository.update_fields(user_id, {"is_visible": is_visible})
        return await self.get_user(user_id)

    async def set_online(self, user_id: str, is_online: bool) -> None:
        fields: Dict[str, Any] = {"is_online": is_online, "last_seen": datetime.now(timezone.utc)}
        await self.user_repository.update_fields(user_id, fields)

    async def add_answer(self, user_id: str, payload: AIAnswerIn, answer_id: Optional[str] = None) -> dict:
        answer = payload.model_dump()
        answer["id"] = answer_id or str(uuid.uuid4())
        answer["created_at"] = datetime.now(timezone.utc)
        if not await self.user_repository.add_answer(user_id, answer):
            raise NotFoundError("User not found")
        return answer
