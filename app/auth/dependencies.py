from typing import Optional
import logging
import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt_handler import decode_access_token
from app.auth.models import User
from app.db.session import get_db

logger = logging.getLogger(__name__)

# Extracts the token from the Authorization: Bearer header
bearer_scheme = HTTPBearer(auto_error=False)


async def get_user_from_token(db: AsyncSession, token: Optional[str]) -> Optional[User]:
    """
    Resolve the user a session token belongs to.

    Returns None for a missing, malformed, expired or orphaned token. Shared by
    the HTTP dependency and the WebSocket handshake.
    """
    if not token:
        return None

    payload = decode_access_token(token)
    if not payload:
        return None

    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except (KeyError, ValueError):
        logger.warning(f"Malformed 'sub' claim in token: {payload.get('sub')}")
        return None

    user = await db.get(User, user_id)
    if not user:
        logger.warning(f"Token refers to an unknown user: id={user_id}")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await get_user_from_token(db, credentials.credentials)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.is_blocked or not user.is_active:
        logger.warning(f"Blocked or inactive user rejected: id={user.id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is blocked")

    return user
