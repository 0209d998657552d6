import hashlib
from typing import Annotated

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trustflow.database import async_session_factory, get_db
from trustflow.models.user import User

DbSession = Annotated[AsyncSession, Depends(get_db)]

# Bearer token scheme, registered in the OpenAPI security definitions
bearer_scheme = HTTPBearer(auto_error=False)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


async def get_redis(request: Request) -> aioredis.Redis:
    """Inject the Redis client from app.state (set during lifespan startup)."""
    return request.app.state.redis


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for flows that need one transaction per attempt."""
    return async_session_factory


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Authenticate a request via `Authorization: Bearer <token>`.

    The token's SHA-256 hash is looked up in users.api_key_hash. Missing and
    unknown tokens both get 401 so tokens cannot be enumerated.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=401,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    result = await db.execute(
        select(User).where(User.api_key_hash == hash_token(credentials.credentials))
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
RedisClient = Annotated[aioredis.Redis, Depends(get_redis)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Gate: admin-only endpoints (backfill). Raises 403 for everyone else."""
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


RequireAdmin = Annotated[User, Depends(require_admin)]
