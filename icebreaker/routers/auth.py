from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm

from icebreaker.routers.deps import get_user_service
from icebreaker.schemas.user import (
    AIAnswerIn,
    AIAnswerPublic,
    LocationUpdate,
    ProfileUpdate,
    Token,
    UserCreate,
    UserPrivate,
    VisibilityUpdate,
    user_private,
    user_public,
)
from icebreaker.services.user_service import UserService
from icebreaker.utils.dependencies import get_current_user
from icebreaker.utils.security import create_access_token


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserPrivate, status_code=status.HTTP_201_CREATED)
async def register(payload: UserCreate, service: UserService = Depends(get_user_service)):
    user = await service.register_user(payload)
    return user_private(user)


@router.post("/login", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), service: UserService = Depends(get_user_service)):
    # username field carries the email
    user = await service.authenticate_user(form_data.username, form_data.password)
    return Token(access_token=create_access_token(user["_id"]))


@router.get("/me", response_model=UserPrivate)
async def me(current_user: dict = Depends(get_current_user)):
    return user_private(current_user)


@router.patch("/me", response_model=UserPrivate)
async def update_me(payload: ProfileUpdate, current_user: dict = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    return user_private(await service.update_profile(current_user["_id"], payload))


@router.put("/me/location", response_model=UserPrivate)
async def update_location(payload: LocationUpdate, current_user: dict = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    return user_private(await service.update_location(current_user["_id"], payload))


@router.put("/me/visibility", response_model=UserPrivate)
async def update_visibility(payload: VisibilityUpdate, current_user: dict = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    return user_private(await service.set_visibility(current_user["_id"], payload.is_visible))


@router.post("/me/answers", response_model=AIAnswerPublic, status_code=status.HTTP_201_CREATED)
async def add_answer(payload: AIAnswerIn, current_user: dict = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    return AIAnswerPublic(**await service.add_answer(current_user["_id"], payload))


@router.get("/users/{user_id}")
async def get_user(user_id: str, current_user: dict = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    return user_public(await service.get_user(user_id))
