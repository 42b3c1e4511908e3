import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .auth.tokens import TokenService
from .config import Config
from .database import Base, build_engine, build_session_factory
from .images.storage import ImageStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Process-wide collaborators, created at startup and disposed at shutdown."""
    settings: Config
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    tokens: TokenService
    images: ImageStore

    @classmethod
    def create(cls, config: Config, engine: Optional[AsyncEngine] = None) -> "AppContext":
        engine = engine or build_engine(config)
        session_factory = build_session_factory(engine)
        return cls(
            settings=config,
            engine=engine,
            session_factory=session_factory,
            tokens=TokenService.from_config(config),
            images=ImageStore(session_factory, chunk_size=config.IMAGE_CHUNK_SIZE),
        )

    async def create_tables(self) -> None:
        from . import db_models  # noqa: F401  populate the metadata first

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    async def close(self) -> None:
        await self.engine.dispose()


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_token_service(request: Request) -> TokenService:
    return get_context(request).tokens


def get_image_store(request: Request) -> ImageStore:
    return get_context(request).images


def get_settings(request: Request) -> Config:
    return get_context(request).settings
