"""
Chunked binary storage for article images.

Files are split into fixed-size chunks and read back one chunk per query, so a
large image never has to sit in memory in one piece. Every operation opens its
own session: releasing or reading a blob is independent of whatever unit of
work the caller has in progress.
"""
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import ImageChunk, ImageFile

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 255 * 1024


class ImageNotFound(LookupError):
    pass


@dataclass(frozen=True)
class StoredImage:
    file_id: int
    filename: Optional[str]
    content_type: Optional[str]
    size: int


class ImageStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.session_factory = session_factory
        self.chunk_size = chunk_size

    async def save(self, data: bytes, filename: Optional[str] = None, content_type: Optional[str] = None) -> StoredImage:
        async with self.session_factory() as db:
            image = ImageFile(filename=filename, content_type=content_type, length=len(data), chunk_size=self.chunk_size)
            db.add(image)
            await db.flush()
            for n, start in enumerate(range(0, len(data), self.chunk_size)):
                db.add(ImageChunk(file_id=image.id, n=n, data=data[start:start + self.chunk_size]))
            await db.commit()
            logger.info(f"Stored image {image.id} ({len(data)} bytes)")
            return StoredImage(file_id=image.id, filename=filename, content_type=content_type, size=len(data))

    async def get(self, file_id: int) -> StoredImage:
        async with self.session_factory() as db:
            image = await db.get(ImageFile, file_id)
            if image is None:
                raise ImageNotFound(file_id)
            return StoredImage(
                file_id=image.id,
                filename=image.filename,
                content_type=image.content_type,
                size=image.length,
            )

    async def iter_chunks(self, file_id: int) -> AsyncIterator[bytes]:
        """Yield the file's chunks in order; raises ImageNotFound before the first chunk if it is missing."""
        async with self.session_factory() as db:
            image = await db.get(ImageFile, file_id)
            if image is None:
                raise ImageNotFound(file_id)
            n = 0
            while True:
                result = await db.execute(
                    select(ImageChunk.data).where(ImageChunk.file_id == file_id, ImageChunk.n == n)
                )
                chunk = result.scalar_one_or_none()
                if chunk is None:
                    break
                yield chunk
                n += 1

    async def delete(self, file_id: int) -> None:
        async with self.session_factory() as db:
            image = await db.get(ImageFile, file_id)
            if image is None:
                # Already gone, nothing to release
                logger.info(f"Image {file_id} not found; nothing to delete")
                return
            await db.execute(delete(ImageChunk).where(ImageChunk.file_id == file_id))
            await db.delete(image)
            await db.commit()
            logger.info(f"Image deleted: {file_id}")
