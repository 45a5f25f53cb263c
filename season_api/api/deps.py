from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from supabase import Client

from season_api.core.errors import ChannelManagerError
from season_api.core.security import decode_access_token
from season_api.crud.profile import get_profile_by_id, is_admin
from season_api.db.base import get_supabase
from season_api.services.channel_manager import (
    ChannelManagerClient,
    build_channel_manager_client,
)

# Tokens are issued by Supabase Auth, this API only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/v1/token")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    client: Client = Depends(get_supabase),
) -> dict:
    """Get the caller's profile from the Supabase access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
        user_id: str | None = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except (JWTError, ValueError):
        raise credentials_exception

    profile = await get_profile_by_id(client, user_id)
    if profile is None:
        raise credentials_exception

    return profile


async def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    if not is_admin(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user


def get_channel_manager(token: str = Depends(oauth2_scheme)) -> ChannelManagerClient:
    try:
        return build_channel_manager_client(token)
    except ChannelManagerError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
