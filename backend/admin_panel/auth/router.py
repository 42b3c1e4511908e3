from typing import Optional

from fastapi import APIRouter, Depends

from ..context import get_token_service
from ..database import SessionDep
from ..users.models import User
from . import service as auth_service
from .dependencies import CurrentUser, oauth2_scheme
from .schema import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    TokenRefreshRequest,
    TokenRefreshResponse,
)
from .tokens import TokenService

router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    db: SessionDep,
    tokens: TokenService = Depends(get_token_service),
):
    result = await auth_service.login(db, tokens, body.email, body.password)
    return LoginResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        user=result.user,
    )

@router.post("/refresh", response_model=TokenRefreshResponse)
async def refresh_access_token(
    body: TokenRefreshRequest,
    db: SessionDep,
    tokens: TokenService = Depends(get_token_service),
):
    access_token = await auth_service.refresh_access_token(db, tokens, body.refresh_token)
    return TokenRefreshResponse(access_token=access_token)

@router.get("/profile", response_model=ProfileResponse)
async def get_profile(current_user: User = CurrentUser):
    return ProfileResponse(user=current_user)

# Works with a missing, malformed or expired token: logout never fails
@router.post("/logout", response_model=MessageResponse)
async def logout(
    db: SessionDep,
    token: Optional[str] = Depends(oauth2_scheme),
    tokens: TokenService = Depends(get_token_service),
):
    await auth_service.logout(db, tokens, token)
    return MessageResponse(message="Logged out successfully")
