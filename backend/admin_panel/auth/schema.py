from typing import Optional

from ..models import CustomModel
from ..users.schema import UserPublic, UserSummary

class LoginRequest(CustomModel):
    email: Optional[str] = None
    password: Optional[str] = None

class LoginResponse(CustomModel):
    access_token: str
    refresh_token: str
    user: UserSummary

class TokenRefreshRequest(CustomModel):
    refresh_token: Optional[str] = None

class TokenRefreshResponse(CustomModel):
    access_token: str
    token_type: str = "bearer"

class ProfileResponse(CustomModel):
    user: UserPublic

class MessageResponse(CustomModel):
    message: str
