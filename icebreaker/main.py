import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from icebreaker.config import get_settings
from icebreaker.database.connection import close_mongo_connection, connect_to_mongo, get_database
from icebreaker.errors import IcebreakerError
from icebreaker.repositories.conversation_repository import ConversationRepository
from icebreaker.repositories.interaction_repository import InteractionRepository
from icebreaker.repositories.message_repository import MessageRepository
from icebreaker.repositories.user_repository import UserRepository
from icebreaker.routers.auth import router as auth_router
from icebreaker.routers.chat import router as chat_router
from icebreaker.routers.conversations import router as conversations_router
from icebreaker.routers.deps import typing_tracker
from icebreaker.routers.devices import router as devices_router
from icebreaker.routers.interactions import router as interactions_router
from icebreaker.routers.matches import router as matches_router
from icebreaker.routers.presence import router as presence_router
from icebreaker.utils.log import configure_logging
from icebreaker.utils.realtime_bus import close_bus


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(get_settings().log_level)
    await connect_to_mongo()
    db = get_database()
    for repo in (UserRepository(db), InteractionRepository(db), ConversationRepository(db), MessageRepository(db)):
        await repo.ensure_indexes()
    try:
        yield
    finally:
        typing_tracker.close()
        await close_bus()
        await close_mongo_connection()


app = FastAPI(title="Icebreaker", lifespan=lifespan)


@app.exception_handler(IcebreakerError)
async def icebreaker_error_handler(request: Request, exc: IcebreakerError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.user_message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.user_message})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


app.include_router(auth_router)
app.include_router(interactions_router)
app.include_router(chat_router)
app.include_router(conversations_router)
app.include_router(matches_router)
app.include_router(presence_router)
app.include_router(devices_router)


@app.get("/")
async def root():
    db = get_database()
    collections = await db.list_collection_names()
    return {"message": "Connected to MongoDB!", "collections": collections}
