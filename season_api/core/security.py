from __future__ import annotations

from jose import jwt

from season_api.core.config import get_settings


def decode_access_token(token: str) -> dict:
    """Decode a Supabase-issued access token.

    Raises ``JWTError`` on a bad signature or an expired token.
    """
    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.algorithm],
        options={"verify_aud": False},
    )
