import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from ..auth.dependencies import require_admin, require_admin_or_editor
from ..auth.schema import MessageResponse
from ..config import Config
from ..context import get_image_store, get_settings
from ..database import SessionDep
from ..errors import AppError, NotFound
from ..images.storage import ImageNotFound, ImageStore
from ..pagination import PageParams, Pagination, page_params
from . import service
from .models import Article
from .schemas import ArticleEnvelope, ArticleList, ArticleUpdate, ArticleUpdated

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/articles", tags=["articles"])


async def _guarded_chunks(images: ImageStore, file_id: int, article_id: int) -> AsyncIterator[bytes]:
    # Headers are already sent after the first chunk; re-raising aborts the response
    try:
        async for chunk in images.iter_chunks(file_id):
            yield chunk
    except Exception as e:
        logger.error(f"Image stream for article {article_id} interrupted: {e}")
        raise


@router.get("/{article_id}/image")
async def stream_article_image(
    article_id: int,
    db: SessionDep,
    images: ImageStore = Depends(get_image_store),
    config: Config = Depends(get_settings),
):
    """Public: stream the article's image from the blob store."""
    article = await db.get(Article, article_id)
    if not article or not article.has_image:
        raise NotFound("Image not found")

    try:
        stored = await images.get(article.image_file_id)
    except ImageNotFound:
        raise NotFound("Image not found")
    except Exception as e:
        logger.exception(f"Failed to open image {article.image_file_id} of article {article_id}: {e}")
        raise AppError("Failed to stream image")

    filename = service.sanitize_filename(article.image_filename or stored.filename)
    headers = {
        "Cache-Control": f"public, max-age={config.IMAGE_CACHE_MAX_AGE}",
        "Content-Disposition": f'inline; filename="{filename}"',
    }
    return StreamingResponse(
        _guarded_chunks(images, stored.file_id, article_id),
        media_type=article.image_mimetype or stored.content_type or "application/octet-stream",
        headers=headers,
    )


@router.get("", response_model=ArticleList, dependencies=[Depends(require_admin_or_editor)])
async def list_articles(
    request: Request,
    db: SessionDep,
    params: PageParams = Depends(page_params),
    status: Optional[str] = None,
    author_id: Optional[str] = Query(None, alias="authorId"),
    search: Optional[str] = None,
    config: Config = Depends(get_settings),
):
    articles, total = await service.list_articles(db, params, status=status, author_id=author_id, search=search)
    items = await service.present(db, articles, service.get_base_url(request, config))
    return ArticleList(articles=items, pagination=Pagination.build(params, total))


@router.get("/{article_id}", response_model=ArticleEnvelope, dependencies=[Depends(require_admin_or_editor)])
async def get_article(
    article_id: int,
    request: Request,
    db: SessionDep,
    config: Config = Depends(get_settings),
):
    article = await service.get_article_or_404(db, article_id)
    [item] = await service.present(db, [article], service.get_base_url(request, config))
    return ArticleEnvelope(article=item)


@router.put("/{article_id}", response_model=ArticleUpdated, dependencies=[Depends(require_admin_or_editor)])
async def update_article(
    article_id: int,
    body: ArticleUpdate,
    request: Request,
    db: SessionDep,
    config: Config = Depends(get_settings),
):
    article = await service.update_article(db, article_id, body)
    [item] = await service.present(db, [article], service.get_base_url(request, config))
    return ArticleUpdated(message="Article updated successfully", article=item)


@router.delete("/{article_id}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
async def delete_article(
    article_id: int,
    db: SessionDep,
    images: ImageStore = Depends(get_image_store),
):
    outcome = await service.delete_article(db, images, article_id)
    if outcome.image_released is False:
        logger.warning(f"Article {article_id} deleted but its image could not be released")
    return MessageResponse(message="Article and comments deleted successfully")
