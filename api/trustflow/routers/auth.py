"""Bearer token registration and verification.

POST /api/v1/keys         -- register a user and issue a bearer token (no auth)
GET  /api/v1/keys/verify  -- check a bearer token (auth required)
"""

import secrets

from fastapi import APIRouter, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from trustflow.dependencies import CurrentUser, DbSession, hash_token
from trustflow.models.user import User
from trustflow.schemas.auth import TokenCreate, TokenResponse

router = APIRouter(prefix="/api/v1", tags=["auth"])


@router.post("/keys", response_model=TokenResponse, status_code=201)
async def issue_token(body: TokenCreate, db: DbSession) -> TokenResponse:
    """Register a user and return a new bearer token.

    The raw token is returned exactly once; only its SHA-256 hash is stored.
    An email that is already registered gets 409.
    """
    if body.email:
        result = await db.execute(select(User.id).where(User.email == body.email))
        if result.scalar_one_or_none() is not None:
            raise HTTPException(status_code=409, detail="Email already registered")

    raw_token = secrets.token_urlsafe(32)
    user = User(
        api_key_hash=hash_token(raw_token),
        email=body.email,
        display_name=body.display_name,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race on the email unique index
        await db.rollback()
        raise HTTPException(status_code=409, detail="Email already registered")

    return TokenResponse(token=raw_token, user_id=user.id)


@router.get("/keys/verify")
async def verify_token(user: CurrentUser) -> dict:
    return {"valid": True, "userId": str(user.id), "isAdmin": user.is_admin}
