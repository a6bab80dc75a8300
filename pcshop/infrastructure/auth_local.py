"""Bearer tokens carrying the user id (``sub``) and shop role (``role``)."""

from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from pcshop.core_settings import get_settings

REQUIRED_CLAIMS = ["sub", "exp"]

def create_access_token(subject: str, role: str, expires_minutes: int = 60) -> str:
    settings = get_settings()
    issued = datetime.now(timezone.utc)
    claims = {"sub": subject, "role": role, "iat": issued, "exp": issued + timedelta(minutes=expires_minutes)}
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

def decode_access_token(token: str) -> Optional[dict]:
    """Verified claims, or None for a bad, expired or incomplete token."""
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.PyJWTError:
        return None
