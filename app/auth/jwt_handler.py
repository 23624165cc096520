from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from jose import jwt, JWTError

from app.config import settings

logger = logging.getLogger(__name__)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT carrying the given claims.

    :param data: claims to encode, must include "sub"
    :param expires_delta: token lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES
    :return: encoded token
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})

    token = jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.ALGORITHM)
    logger.info(f"Token issued for sub={to_encode.get('sub')}, expires at {expire}")
    return token


def create_user_token(user, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token(
        {
            "sub": str(user.id),
            "email": user.email,
            "authProvider": user.auth_provider,
            "firstName": user.first_name,
            "lastName": user.last_name,
            "displayName": user.display_name,
            "avatar": user.avatar,
        },
        expires_delta,
    )


def decode_access_token(token: str) -> Optional[dict]:
    """
    Decode and verify a JWT.

    Returns the payload when the signature and expiry are valid and the
    'sub' claim is present, otherwise None.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"Token decoding failed: {e}")
        return None

    if not payload.get("sub"):
        logger.warning("Token is valid but the 'sub' claim is missing")
        return None

    return payload
