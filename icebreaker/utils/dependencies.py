from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from icebreaker.database.connection import mongo_db_dependency
from icebreaker.errors import AuthError
from icebreaker.repositories.user_repository import UserRepository
from icebreaker.utils.security import decode_access_token


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_user(token: str = Depends(oauth2_scheme), db = Depends(mongo_db_dependency)) -> dict:
    payload = decode_access_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Invalid authentication token")
    user = await UserRepository(db).get_user_by_id(user_id)
    if not user:
        raise AuthError("Account not found")
    return user
