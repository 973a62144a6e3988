# research_tasks/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt

from research_tasks.config import Settings, get_settings


def create_access_token(data: Dict[str, Any], settings: Optional[Settings] = None) -> str:
    settings = settings or get_settings()
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update(
        {
            "iat": now,
            "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            "type": "access",
        }
    )
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Raises jose.JWTError (incl. ExpiredSignatureError) on a bad token."""
    settings = settings or get_settings()
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
