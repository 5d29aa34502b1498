from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.api.schemas.auth import AccessToken, LoginRequest
from app.core.db import get_session
from app.models.user import User, UserPublic
from app.services.auth_service import login_user, user_to_public

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=AccessToken)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
) -> AccessToken:
    result = await login_user(session, body.email, body.password)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    _, access, expires_in = result
    return AccessToken(access_token=access, expires_in=expires_in)


@router.get("/me", response_model=UserPublic)
async def me(current_user: User = Depends(get_current_user)) -> UserPublic:
    return user_to_public(current_user)
