import logging
import re
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from passlib.context import CryptContext

from ..auth import policy
from ..errors import ConflictError, NotFound, PermissionDenied, ValidationFailed
from ..pagination import PageParams
from .models import User as UserModel, UserRole

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8
USERNAME_MIN, USERNAME_MAX = 3, 50


def normalize_email(email: str) -> str:
    return email.strip().lower()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


async def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


async def get_user_by_id(user_id: int, db: AsyncSession) -> Optional[UserModel]:
    result = await db.execute(select(UserModel).where(UserModel.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(email: str, db: AsyncSession) -> Optional[UserModel]:
    result = await db.execute(select(UserModel).where(UserModel.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def get_user_by_username(username: str, db: AsyncSession) -> Optional[UserModel]:
    result = await db.execute(select(UserModel).where(UserModel.username == username))
    return result.scalar_one_or_none()


def _conflict_from_integrity_error(error: IntegrityError) -> ConflictError:
    """Work out which unique field collided from the driver's message."""
    text = str(getattr(error, "orig", error)).lower()
    if "username" in text:
        return ConflictError("Username already exists", field="username")
    return ConflictError("Email already exists", field="email")


async def create_user(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    username: str,
    role: UserRole,
    verified: bool = True,
    is_active: bool = True,
) -> UserModel:
    """Insert a user row; a unique-key race is reported as a conflict naming the field."""
    db_user = UserModel(
        email=normalize_email(email),
        username=username,
        hashed_password=hash_password(password),
        role=role,
        verified=verified,
        is_active=is_active,
    )
    db.add(db_user)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning(f"Duplicate key while creating user {email!r}: {e.orig}")
        raise _conflict_from_integrity_error(e)
    await db.refresh(db_user)
    return db_user


async def create_editor(
    db: AsyncSession,
    *,
    email: Optional[str],
    password: Optional[str],
    username: Optional[str] = None,
) -> UserModel:
    if not email or not password:
        raise ValidationFailed("Email and password are required")
    if not EMAIL_RE.match(email):
        raise ValidationFailed("Invalid email format")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if await get_user_by_email(email, db):
        raise ConflictError("Email already registered", field="email")

    # Derive the username from the email local-part when none is given
    final_username = (username or "").strip() or email.split("@")[0]
    if not USERNAME_MIN <= len(final_username) <= USERNAME_MAX:
        raise ValidationFailed(f"Username must be between {USERNAME_MIN} and {USERNAME_MAX} characters")

    if await get_user_by_username(final_username, db):
        raise ConflictError("Username already taken", field="username")

    editor = await create_user(
        db,
        email=email,
        password=password,
        username=final_username,
        role=UserRole.EDITOR,
        verified=True,
        is_active=True,
    )
    logger.info(f"Editor created: id={editor.id}, email={editor.email}")
    return editor


def _parse_active_flag(is_active: Optional[str]) -> Optional[bool]:
    if is_active is None or is_active == "":
        return None
    return is_active == "true"


async def _paginated_users(
    db: AsyncSession,
    roles: Iterable[UserRole],
    params: PageParams,
    is_active: Optional[str],
    search: Optional[str],
) -> Tuple[List[UserModel], int]:
    conditions = [UserModel.role.in_(list(roles))]
    active = _parse_active_flag(is_active)
    if active is not None:
        conditions.append(UserModel.is_active.is_(active))
    if search:
        conditions.append(or_(
            UserModel.username.icontains(search, autoescape=True),
            UserModel.email.icontains(search, autoescape=True),
        ))

    total = (await db.execute(select(func.count(UserModel.id)).where(*conditions))).scalar_one()
    result = await db.execute(
        select(UserModel)
        .where(*conditions)
        .order_by(UserModel.created_at.desc(), UserModel.id.desc())
        .offset(params.offset)
        .limit(params.limit)
    )
    return list(result.scalars().all()), total


async def list_users(
    db: AsyncSession,
    params: PageParams,
    *,
    role: Optional[str] = None,
    is_active: Optional[str] = None,
    search: Optional[str] = None,
) -> Tuple[List[UserModel], int]:
    """Writers and Readers only; Admin and Editor rows never leave this listing."""
    roles = set(policy.ASSIGNABLE_ROLES)
    if role:
        # A role filter outside Writer/Reader matches nothing
        roles = {r for r in roles if r.value == role}
    return await _paginated_users(db, roles, params, is_active, search)


async def list_editors(
    db: AsyncSession,
    params: PageParams,
    *,
    is_active: Optional[str] = None,
    search: Optional[str] = None,
) -> Tuple[List[UserModel], int]:
    return await _paginated_users(db, [UserRole.EDITOR], params, is_active, search)


async def get_user_or_404(user_id: int, db: AsyncSession) -> UserModel:
    user = await get_user_by_id(user_id, db)
    if not user:
        raise NotFound("User not found")
    return user


async def update_role(db: AsyncSession, *, actor: UserModel, user_id: int, role: Optional[str]) -> UserModel:
    try:
        new_role = UserRole(role)
    except ValueError:
        new_role = None
    if new_role not in policy.ASSIGNABLE_ROLES:
        raise ValidationFailed("Invalid role. Only Writer and Reader roles can be assigned.")

    user = await get_user_or_404(user_id, db)
    verdict = policy.authorize_role_change(actor.id, user.id, user.role)
    if not verdict:
        raise PermissionDenied(verdict.reason)

    user.role = new_role
    await db.commit()
    await db.refresh(user)
    logger.info(f"User {user.id} role set to {new_role.value} by {actor.id}")
    return user


async def toggle_active(db: AsyncSession, *, actor: UserModel, user_id: int) -> UserModel:
    user = await get_user_or_404(user_id, db)
    verdict = policy.authorize_status_toggle(actor.id, user.id)
    if not verdict:
        raise PermissionDenied(verdict.reason)

    user.is_active = not user.is_active
    await db.commit()
    await db.refresh(user)
    logger.info(f"User {user.id} {'activated' if user.is_active else 'suspended'} by {actor.id}")
    return user


async def store_refresh_token(user: UserModel, token: Optional[str], db: AsyncSession) -> None:
    # Overwrites whatever was there: one valid refresh token per user, last writer wins
    user.refresh_token = token
    await db.commit()


async def update_last_login(user: UserModel, db: AsyncSession) -> None:
    # Recorded with the database server clock
    user.last_login = func.now()
    await db.commit()
    await db.refresh(user)


async def seed_admin(db: AsyncSession, *, email: str, password: str, username: str = "Admin") -> Optional[UserModel]:
    """Create the bootstrap Admin unless a user with that email already exists."""
    if await get_user_by_email(email, db):
        logger.info("Admin user already exists - skipping creation")
        return None
    admin = await create_user(
        db,
        email=email,
        password=password,
        username=username,
        role=UserRole.ADMIN,
        verified=True,
        is_active=True,
    )
    logger.info(f"Admin user created: {admin.email}")
    return admin
