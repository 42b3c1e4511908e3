from pydantic import Field
from typing import List, Optional

from ..models import CustomModel, Timestamp
from ..pagination import Pagination
from .models import UserRole

class UserSummary(CustomModel):
    """What the login flow hands back: no password hash, no refresh token."""
    id: int = Field(..., json_schema_extra={"example": 1})
    username: str = Field(..., json_schema_extra={"example": "jdoe"})
    email: str = Field(..., json_schema_extra={"example": "user@example.com"})
    role: UserRole
    avatar: Optional[str] = None

class UserPublic(UserSummary):
    is_active: bool
    verified: bool
    last_login: Optional[Timestamp] = None
    created_at: Timestamp
    updated_at: Timestamp

class UserStatus(CustomModel):
    id: int
    username: str
    email: str
    role: UserRole
    is_active: bool

class UserEnvelope(CustomModel):
    user: UserPublic

class UserList(CustomModel):
    users: List[UserPublic]
    pagination: Pagination

class EditorCreate(CustomModel):
    # Optional at the schema level so missing fields get the same message as blank ones
    email: Optional[str] = Field(None, json_schema_extra={"example": "editor@example.com"})
    password: Optional[str] = Field(None, json_schema_extra={"example": "strongpassword123"})
    username: Optional[str] = Field(None, json_schema_extra={"example": "editor"})

class EditorCreated(CustomModel):
    message: str
    user: UserPublic

class RoleUpdate(CustomModel):
    role: Optional[str] = Field(None, json_schema_extra={"example": "Writer"})

class UserStatusChanged(CustomModel):
    message: str
    user: UserStatus
