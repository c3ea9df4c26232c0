# app/core/security.py
# JWT encoding/decoding for viewer identity
# Tokens are issued by the auth collaborator; this service only reads them.
# create_access_token() exists for local tooling and tests.

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from app.core.config import settings


def create_access_token(user_id: str, role: str, minutes: Optional[int] = None) -> str:
    """
    Create a short-lived JWT access token.

    Payload:
        sub  -- user id as string
        role -- student | parent | teacher | admin
        type -- "access"
        exp  -- expiry timestamp
    """
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=minutes if minutes is not None else settings.access_token_expire_minutes
    )
    payload = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """
    Decode and validate a JWT token.
    Returns the payload dict if valid, None if expired or invalid.
    """
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
