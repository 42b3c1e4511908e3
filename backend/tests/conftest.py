import os
import sys
from pathlib import Path
from typing import Optional

import pytest

from sqlalchemy.ext.asyncio import create_async_engine
from httpx import AsyncClient, ASGITransport

# Test settings, applied before the admin_panel package is imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET_KEY", "test-refresh-secret")
os.environ.setdefault("CORS_ORIGINS", "http://localhost:4200")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Put backend/ on sys.path so the 'admin_panel' package can be found
repo_root = Path(__file__).resolve().parents[2]
backend_path = repo_root / "backend"
if str(backend_path) not in sys.path:
    sys.path.insert(0, str(backend_path))

from admin_panel.main import app
from admin_panel.config import settings
from admin_panel.context import AppContext
from admin_panel.articles import service as article_service
from admin_panel.users import service as user_service
from admin_panel.users.models import UserRole

DEFAULT_PASSWORD = "password123"


@pytest.fixture()
async def context(tmp_path):
    # A file-backed SQLite database per test; request sessions and test sessions share it
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    ctx = AppContext.create(settings, engine=engine)
    await ctx.create_tables()
    app.state.context = ctx
    yield ctx
    await ctx.close()


@pytest.fixture()
async def db(context):
    async with context.session_factory() as session:
        yield session


@pytest.fixture()
async def client(context):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    async def _make(
        role: UserRole = UserRole.WRITER,
        *,
        username: Optional[str] = None,
        email: Optional[str] = None,
        password: str = DEFAULT_PASSWORD,
        is_active: bool = True,
    ):
        counter["n"] += 1
        name = username or f"{role.value.lower()}{counter['n']}"
        return await user_service.create_user(
            db,
            email=email or f"{name}@example.com",
            password=password,
            username=name,
            role=role,
            is_active=is_active,
        )

    return _make


@pytest.fixture()
async def admin(make_user):
    return await make_user(UserRole.ADMIN, username="admin", email="admin@example.com")


@pytest.fixture()
async def editor(make_user):
    return await make_user(UserRole.EDITOR, username="editor", email="editor@example.com")


@pytest.fixture()
def auth_headers(context):
    def _headers(user) -> dict:
        token = context.tokens.issue_access_token(user)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def make_article(db):
    async def _make(author, *, title: str = "Hello world", content: str = "Body text", views: int = 0,
                    created_at=None, **kwargs):
        article = await article_service.create_article(
            db, author_id=author.id, title=title, content=content, **kwargs
        )
        if views or created_at is not None:
            article.views = views
            if created_at is not None:
                article.created_at = created_at
            await db.commit()
            await db.refresh(article)
        return article

    return _make
