"""Request dependencies: database session and acting user."""
from dataclasses import dataclass
from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.core.security import decode_access_token
from produce_app.db.session import SessionLocal

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class Actor:
    """The user behind a request, as carried in the access token."""
    id: Optional[int]
    name: str
    role: str


SYSTEM_ACTOR = Actor(id=None, name="System", role="admin")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One database session per request.
    """
    async with SessionLocal() as session:
        yield session


def _actor_from_token(token: str) -> Actor:
    payload = decode_access_token(token)
    try:
        actor_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")
    return Actor(id=actor_id, name=payload.get("name") or "", role=payload.get("role") or "member")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    if not credentials:
        raise HTTPException(status_code=401, detail="Authentication required")
    return _actor_from_token(credentials.credentials)


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    """Acting user for audit trails; falls back to the system actor."""
    if not credentials:
        return SYSTEM_ACTOR
    return _actor_from_token(credentials.credentials)
