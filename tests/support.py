from types import SimpleNamespace

from mongomock_motor import AsyncMongoMockClient

from icebreaker.repositories.user_repository import UserRepository


def make_db():
    return AsyncMongoMockClient()["icebreaker_test"]


async def create_user(db, first_name: str, latitude: float | None = None, longitude: float | None = None, answers=None) -> str:
    user_id = await UserRepository(db).create_user(
        email=f"{first_name.lower()}@icebreaker.dev",
        hashed_password="x",
        profile={"first_name": first_name, "age": 30},
    )
    fields = {}
    if latitude is not None:
        fields = {"latitude": latitude, "longitude": longitude}
    if answers:
        fields["ai_answers"] = answers
    if fields:
        await UserRepository(db).update_fields(user_id, fields)
    return user_id


class FakeCompletions:
    def __init__(self, replies=None, error: Exception | None = None) -> None:
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        content = self.replies.pop(0) if self.replies else "ok"
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeLLM:
    """Stands in for AsyncOpenAI; only ``chat.completions.create`` is used."""

    def __init__(self, replies=None, error: Exception | None = None) -> None:
        self.completions = FakeCompletions(replies, error)
        self.chat = SimpleNamespace(completions=self.completions)
