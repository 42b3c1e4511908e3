from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from ..database import SessionDep
from ..pagination import PageParams, Pagination, page_params
from ..users.models import User as UserModel

from .schema import (
    EditorCreate,
    EditorCreated,
    RoleUpdate,
    UserEnvelope,
    UserList,
    UserStatusChanged,
)
from . import service as user_service
from ..auth.dependencies import require_admin, require_admin_or_editor

router = APIRouter(prefix="/api/users", tags=["users"])

@router.post("/editors", response_model=EditorCreated, status_code=status.HTTP_201_CREATED)
async def create_editor(
    body: EditorCreate,
    db: SessionDep,
    _admin: UserModel = Depends(require_admin),
):
    """(Admin only) Create a verified, active Editor account."""
    editor = await user_service.create_editor(db, email=body.email, password=body.password, username=body.username)
    return EditorCreated(message="Editor created successfully", user=editor)

@router.get("/editors", response_model=UserList, dependencies=[Depends(require_admin)])
async def list_editors(
    db: SessionDep,
    params: PageParams = Depends(page_params),
    is_active: Optional[str] = Query(None, alias="isActive"),
    search: Optional[str] = None,
):
    users, total = await user_service.list_editors(db, params, is_active=is_active, search=search)
    return UserList(users=users, pagination=Pagination.build(params, total))

@router.get("", response_model=UserList, dependencies=[Depends(require_admin_or_editor)])
async def list_users(
    db: SessionDep,
    params: PageParams = Depends(page_params),
    role: Optional[str] = None,
    is_active: Optional[str] = Query(None, alias="isActive"),
    search: Optional[str] = None,
):
    users, total = await user_service.list_users(db, params, role=role, is_active=is_active, search=search)
    return UserList(users=users, pagination=Pagination.build(params, total))

@router.get("/{user_id}", response_model=UserEnvelope, dependencies=[Depends(require_admin_or_editor)])
async def get_user_by_id_route(user_id: int, db: SessionDep):
    user = await user_service.get_user_or_404(user_id, db)
    return UserEnvelope(user=user)

@router.put("/{user_id}/role", response_model=UserStatusChanged)
async def update_user_role(
    user_id: int,
    body: RoleUpdate,
    db: SessionDep,
    actor: UserModel = Depends(require_admin),
):
    user = await user_service.update_role(db, actor=actor, user_id=user_id, role=body.role)
    return UserStatusChanged(message="User role updated successfully", user=user)

@router.put("/{user_id}/status", response_model=UserStatusChanged)
async def toggle_user_status(
    user_id: int,
    db: SessionDep,
    actor: UserModel = Depends(require_admin_or_editor),
):
    user = await user_service.toggle_active(db, actor=actor, user_id=user_id)
    state = "activated" if user.is_active else "suspended"
    return UserStatusChanged(message=f"User account {state} successfully", user=user)
