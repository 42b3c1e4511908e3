import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import (
    AccessDenied,
    AccountSuspended,
    AuthenticationFailed,
    ConfigurationError,
    InvalidCredentials,
    ValidationFailed,
)
from ..users import service as user_service
from ..users.models import User
from . import policy
from .tokens import TokenService

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    access_token: str
    refresh_token: str
    user: User


async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
    """
    Check an email/password pair.
    Returns the User on success and None otherwise, without saying which half was wrong.
    """
    user = await user_service.get_user_by_email(email, db)
    if not user or not await user_service.verify_password(password, user.hashed_password):
        return None
    return user


async def login(db: AsyncSession, tokens: TokenService, email: Optional[str], password: Optional[str]) -> LoginResult:
    if not email or not password:
        raise ValidationFailed("Email and password are required")

    if not tokens.is_configured:
        logger.error("JWT secrets not configured")
        raise ConfigurationError()

    user = await authenticate_user(db, email, password)
    if user is None:
        raise InvalidCredentials()

    if not user.is_active:
        raise AccountSuspended()

    # Writers and Readers have valid credentials but no business in the admin panel
    if not policy.authorize(user, policy.PANEL_ACCESS):
        raise AccessDenied()

    access_token = tokens.issue_access_token(user)
    refresh_token = tokens.issue_refresh_token(user)

    await user_service.store_refresh_token(user, refresh_token, db)
    await user_service.update_last_login(user=user, db=db)
    logger.info(f"User {user.id} logged in")

    return LoginResult(access_token=access_token, refresh_token=refresh_token, user=user)


async def refresh_access_token(db: AsyncSession, tokens: TokenService, refresh_token: Optional[str]) -> str:
    """
    Trade a refresh token for a new access token.
    The token must be the one currently stored for the user; anything older was overwritten.
    """
    identity = tokens.verify_refresh(refresh_token)
    if identity is None:
        raise AuthenticationFailed("Invalid refresh token")

    user = await user_service.get_user_by_id(identity.user_id, db)
    if user is None or user.refresh_token != refresh_token:
        raise AuthenticationFailed("Invalid refresh token")
    if not user.is_active:
        raise AccountSuspended()
    if not policy.authorize(user, policy.PANEL_ACCESS):
        raise AccessDenied()

    return tokens.issue_access_token(user)


async def get_user_from_access_token(token: Optional[str], tokens: TokenService, db: AsyncSession) -> Optional[User]:
    identity = tokens.verify(token)
    if identity is None:
        return None
    return await user_service.get_user_by_id(identity.user_id, db)


async def logout(db: AsyncSession, tokens: TokenService, token: Optional[str]) -> None:
    """Clear the stored refresh token when the caller can be identified. Never fails."""
    try:
        user = await get_user_from_access_token(token, tokens, db)
        if user is not None:
            await user_service.store_refresh_token(user, None, db)
            logger.info(f"User {user.id} logged out")
    except Exception as e:
        # The client clears its tokens either way
        logger.error(f"Logout cleanup failed: {e}")
        await db.rollback()
