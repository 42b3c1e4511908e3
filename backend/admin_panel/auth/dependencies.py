from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from ..context import get_token_service
from ..database import SessionDep
from ..errors import AccountSuspended, AuthenticationFailed, PermissionDenied

from ..users.models import User
from ..auth import service as auth_service
from . import policy
from .tokens import TokenService

# auto_error is off so a missing header yields our own {"error": ...} body
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

async def get_current_user_from_access_token(
    db: SessionDep,
    token: Optional[str] = Depends(oauth2_scheme),
    tokens: TokenService = Depends(get_token_service),
) -> User:
    if not token:
        raise AuthenticationFailed("Access token required")

    user = await auth_service.get_user_from_access_token(token=token, tokens=tokens, db=db)
    if user is None:
        raise AuthenticationFailed("Invalid or expired token")
    if not user.is_active:
        raise AccountSuspended()
    return user

CurrentUser = Depends(get_current_user_from_access_token)

def require(capability: policy.Capability):
    """
    Build a dependency that lets the request through only when the current
    user's role belongs to ``capability``; otherwise 403 with the capability's message.
    """
    def _check(current_user: User = CurrentUser) -> User:
        verdict = policy.authorize(current_user, capability)
        if not verdict:
            raise PermissionDenied(verdict.reason)
        return current_user
    return _check

require_admin = require(policy.IS_ADMIN)
require_admin_or_editor = require(policy.IS_ADMIN_OR_EDITOR)
