import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from fastapi import Request
from sqlalchemy import String, cast, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..config import Config
from ..errors import NotFound, ValidationFailed
from ..images.storage import ImageStore
from ..pagination import PageParams
from ..users import service as user_service
from .models import Article, ArticleStatus, Comment, article_likes
from .schemas import ArticleAuthor, ArticleImage, ArticleOut, ArticleUpdate

logger = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r"[^\w.\- ]")
DEFAULT_IMAGE_NAME = "article-image"
UPDATABLE_FIELDS = ("title", "content", "tags", "status")


@dataclass(frozen=True)
class DeletionOutcome:
    """What a cascading delete managed to do; the image release is best-effort."""
    article_deleted: bool
    comments_deleted: int
    image_released: Optional[bool]  # None when the article had no image


def sanitize_filename(filename: Optional[str]) -> str:
    return UNSAFE_FILENAME_CHARS.sub("_", filename or DEFAULT_IMAGE_NAME)


def get_base_url(request: Request, config: Config) -> str:
    if config.APP_BASE_URL:
        return config.APP_BASE_URL.rstrip("/")
    # Behind a proxy the scheme comes from X-Forwarded-Proto
    scheme = request.headers.get("x-forwarded-proto") or request.url.scheme
    host = request.headers.get("host") or request.url.netloc
    is_localhost = "localhost" in host or "127.0.0.1" in host
    if scheme != "https" and not is_localhost and config.is_production:
        scheme = "https"
    return f"{scheme}://{host}"


# ---------------------------------------------------------------------------
# Derived fields
# ---------------------------------------------------------------------------

async def count_comments(db: AsyncSession, article_ids: Iterable[int]) -> Dict[int, int]:
    ids = list(article_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(Comment.article_id, func.count(Comment.id))
        .where(Comment.article_id.in_(ids), Comment.is_deleted.is_(False))
        .group_by(Comment.article_id)
    )
    return {article_id: count for article_id, count in result.all()}


async def count_likes(db: AsyncSession, article_ids: Optional[Iterable[int]] = None) -> Dict[int, int]:
    stmt = select(article_likes.c.article_id, func.count()).group_by(article_likes.c.article_id)
    if article_ids is not None:
        ids = list(article_ids)
        if not ids:
            return {}
        stmt = stmt.where(article_likes.c.article_id.in_(ids))
    result = await db.execute(stmt)
    return {article_id: count for article_id, count in result.all()}


def to_article_out(article: Article, *, comment_count: int, likes_count: int, base_url: str) -> ArticleOut:
    image = None
    image_url = None
    if article.has_image:
        image = ArticleImage(
            file_id=article.image_file_id,
            filename=article.image_filename,
            mimetype=article.image_mimetype,
            size=article.image_size,
        )
        image_url = f"{base_url}/api/articles/{article.id}/image"
    return ArticleOut(
        id=article.id,
        title=article.title,
        content=article.content,
        tags=list(article.tags or []),
        status=article.status,
        views=article.views or 0,
        likes_count=likes_count,
        comment_count=comment_count,
        author=ArticleAuthor.model_validate(article.author) if article.author else None,
        image=image,
        image_url=image_url,
        created_at=article.created_at,
        updated_at=article.updated_at,
    )


async def present(db: AsyncSession, articles: List[Article], base_url: str) -> List[ArticleOut]:
    ids = [a.id for a in articles]
    comments = await count_comments(db, ids)
    likes = await count_likes(db, ids)
    return [
        to_article_out(a, comment_count=comments.get(a.id, 0), likes_count=likes.get(a.id, 0), base_url=base_url)
        for a in articles
    ]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def get_article(db: AsyncSession, article_id: int) -> Optional[Article]:
    result = await db.execute(
        select(Article)
        .options(selectinload(Article.author))
        .where(Article.id == article_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_article_or_404(db: AsyncSession, article_id: int) -> Article:
    article = await get_article(db, article_id)
    if not article:
        raise NotFound("Article not found")
    return article


async def list_articles(
    db: AsyncSession,
    params: PageParams,
    *,
    status: Optional[str] = None,
    author_id: Optional[str] = None,
    search: Optional[str] = None,
) -> Tuple[List[Article], int]:
    conditions = []
    if status:
        try:
            conditions.append(Article.status == ArticleStatus(status))
        except ValueError:
            # Unknown status matches nothing
            return [], 0
    if author_id:
        try:
            conditions.append(Article.author_id == int(author_id))
        except ValueError:
            return [], 0
    if search:
        # autoescape: % and _ in the term match literally
        conditions.append(or_(
            Article.title.icontains(search, autoescape=True),
            Article.content.icontains(search, autoescape=True),
            cast(Article.tags, String).icontains(search, autoescape=True),
        ))

    total = (await db.execute(select(func.count(Article.id)).where(*conditions))).scalar_one()
    result = await db.execute(
        select(Article)
        .options(selectinload(Article.author))
        .where(*conditions)
        .order_by(Article.created_at.desc(), Article.id.desc())
        .offset(params.offset)
        .limit(params.limit)
    )
    return list(result.scalars().all()), total


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def create_article(
    db: AsyncSession,
    *,
    author_id: int,
    title: str,
    content: str,
    tags: Optional[List[str]] = None,
    status: ArticleStatus = ArticleStatus.DRAFT,
    image=None,
) -> Article:
    """Insert an article; the author must exist. ``image`` is a StoredImage from the ImageStore."""
    if not await user_service.get_user_by_id(author_id, db):
        raise ValidationFailed("Author not found")
    article = Article(
        author_id=author_id,
        title=title.strip(),
        content=content,
        tags=list(tags or []),
        status=status,
    )
    if image is not None:
        article.image_file_id = image.file_id
        article.image_filename = image.filename
        article.image_mimetype = image.content_type
        article.image_size = image.size
    db.add(article)
    await db.commit()
    return await get_article_or_404(db, article.id)


async def update_article(db: AsyncSession, article_id: int, data: ArticleUpdate) -> Article:
    article = await get_article_or_404(db, article_id)
    update_data = data.model_dump(exclude_unset=True, exclude_none=True)

    for field in UPDATABLE_FIELDS:
        if field in update_data:
            setattr(article, field, update_data[field])

    await db.commit()
    await db.refresh(article)
    logger.info(f"Article {article.id} updated: fields={sorted(update_data)}")
    return await get_article_or_404(db, article.id)


async def delete_article(db: AsyncSession, images: ImageStore, article_id: int) -> DeletionOutcome:
    """
    Delete an article with its comments and image.

    The steps run one after the other and are not rolled back together: the
    comments go first, then the image is released best-effort (a failure is
    logged and the delete carries on), then the article row itself.
    """
    article = await get_article_or_404(db, article_id)
    image_file_id = article.image_file_id

    result = await db.execute(delete(Comment).where(Comment.article_id == article_id))
    comments_deleted = result.rowcount or 0
    await db.commit()

    image_released = None
    if image_file_id is not None:
        try:
            await images.delete(image_file_id)
            image_released = True
        except Exception as e:
            logger.error(f"Error deleting image {image_file_id} of article {article_id}: {e}")
            image_released = False

    await db.execute(delete(article_likes).where(article_likes.c.article_id == article_id))
    await db.execute(delete(Article).where(Article.id == article_id))
    await db.commit()
    logger.info(
        f"Article {article_id} deleted: comments={comments_deleted}, image_released={image_released}"
    )
    return DeletionOutcome(article_deleted=True, comments_deleted=comments_deleted, image_released=image_released)
