import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
from jose.exceptions import ExpiredSignatureError

from ..config import Config
from ..errors import ConfigurationError
from ..users.models import User, UserRole

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class Identity:
    """Who a verified token speaks for."""
    user_id: int
    role: Optional[UserRole] = None
    username: Optional[str] = None


class TokenService:
    """
    Issues and verifies the short-lived access token and the long-lived refresh token.

    Access and refresh tokens are signed with different secrets and carry a
    ``type`` claim, so one can never stand in for the other.
    """

    def __init__(
        self,
        secret: Optional[str],
        refresh_secret: Optional[str],
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        self.secret = secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_config(cls, config: Config) -> "TokenService":
        return cls(
            secret=config.JWT_SECRET_KEY,
            refresh_secret=config.JWT_REFRESH_SECRET_KEY,
            algorithm=config.JWT_ALGORITHM,
            access_ttl=timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.secret) and bool(self.refresh_secret)

    def issue_access_token(self, user: User) -> str:
        if not self.secret:
            raise ConfigurationError()
        role = user.role.value if isinstance(user.role, UserRole) else user.role
        to_encode = {
            "sub": str(user.id),
            "role": role,
            "username": user.username,
            "type": ACCESS,
            "exp": datetime.now(timezone.utc) + self.access_ttl,
        }
        return jwt.encode(to_encode, self.secret, algorithm=self.algorithm)

    def issue_refresh_token(self, user: User) -> str:
        if not self.refresh_secret:
            raise ConfigurationError()
        to_encode = {
            "sub": str(user.id),
            "type": REFRESH,
            "exp": datetime.now(timezone.utc) + self.refresh_ttl,
        }
        return jwt.encode(to_encode, self.refresh_secret, algorithm=self.algorithm)

    def verify(self, token: Optional[str]) -> Optional[Identity]:
        return self._verify(token, self.secret, ACCESS)

    def verify_refresh(self, token: Optional[str]) -> Optional[Identity]:
        return self._verify(token, self.refresh_secret, REFRESH)

    def _verify(self, token: Optional[str], secret: Optional[str], expected_type: str) -> Optional[Identity]:
        if not token or not secret:
            return None
        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            logger.info(f"Rejected expired {expected_type} token")
            return None
        except JWTError as e:
            logger.info(f"Rejected malformed {expected_type} token: {e}")
            return None

        if payload.get("type") != expected_type:
            logger.info(f"Rejected token of type {payload.get('type')!r}, expected {expected_type!r}")
            return None

        try:
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            logger.info("Rejected token without a usable subject")
            return None

        role = payload.get("role")
        try:
            role = UserRole(role) if role is not None else None
        except ValueError:
            logger.info(f"Rejected token with unknown role {role!r}")
            return None
        return Identity(user_id=user_id, role=role, username=payload.get("username"))
