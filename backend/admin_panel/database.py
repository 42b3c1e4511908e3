from typing import Annotated, AsyncGenerator

from fastapi import Depends, Request

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from .config import Config

Base = declarative_base()


def build_engine(config: Config) -> AsyncEngine:
    options = {"pool_pre_ping": True}
    if config.DATABASE_URL.startswith("postgresql"):
        options["pool_recycle"] = 1800  # reconnect every 30 minutes to dodge RDS idle timeouts
        options["connect_args"] = {"ssl": config.POSTGRES_SSLMODE == "require"}
    return create_async_engine(config.DATABASE_URL, **options)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    session_factory = request.app.state.context.session_factory
    async with session_factory() as sess:  # async with closes the session and rolls back leftovers
        yield sess

# Annotated alias: routes just declare `db: SessionDep`.
SessionDep = Annotated[AsyncSession, Depends(get_db)]
