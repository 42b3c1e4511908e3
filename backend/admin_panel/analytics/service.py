"""
Aggregate statistics over articles, users and comments.

Everything here is read-only and computed per request. The reads of one report
run one after another on the request's session (an ``AsyncSession`` must not be
shared between concurrent tasks); none of them depends on another's result.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..articles.models import Article, ArticleStatus, Comment, article_likes
from ..articles.service import count_likes
from ..errors import ValidationFailed
from ..users.models import User
from .schemas import (
    ArticleAnalyticsReport,
    AuthorRollup,
    DashboardCharts,
    DashboardReport,
    MonthCount,
    MonthViews,
    Overview,
    RankedArticle,
    RecentArticle,
    StatusCount,
    TopArticle,
)

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unknown"
DASHBOARD_MONTHS = 12
DASHBOARD_TOP = 5
REPORT_TOP = 10


@dataclass(frozen=True)
class DateWindow:
    """Optional inclusive creation-date window; either bound may be open."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @classmethod
    def parse(cls, start: Optional[str], end: Optional[str]) -> "DateWindow":
        return cls(start=parse_date(start), end=parse_date(end))

    def conditions(self) -> list:
        clauses = []
        if self.start is not None:
            clauses.append(Article.created_at >= self.start)
        if self.end is not None:
            clauses.append(Article.created_at <= self.end)
        return clauses


def parse_date(raw: Optional[str]) -> Optional[datetime]:
    """ISO-8601 date or datetime; a bare date means midnight UTC. Empty means no bound."""
    if raw is None or not raw.strip():
        return None
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        value = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationFailed("Invalid date range")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def month_key(year, month) -> str:
    # extract() returns Decimal on PostgreSQL and int on SQLite
    return f"{int(year):04d}-{int(month):02d}"


def author_name(article: Article) -> str:
    if article.author is not None and article.author.username:
        return article.author.username
    return UNKNOWN_AUTHOR


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

async def count_by_status(db: AsyncSession, conditions: list = ()) -> List[StatusCount]:
    result = await db.execute(
        select(Article.status, func.count(Article.id))
        .where(*conditions)
        .group_by(Article.status)
        .order_by(func.count(Article.id).desc())
    )
    return [StatusCount(status=status, count=count) for status, count in result.all()]


async def _scalar(db: AsyncSession, stmt) -> int:
    return (await db.execute(stmt)).scalar_one() or 0


async def ranked_articles(db: AsyncSession, conditions: list, order_by, limit: int) -> List[Article]:
    result = await db.execute(
        select(Article)
        .options(selectinload(Article.author))
        .where(*conditions)
        .order_by(*order_by)
        .limit(limit)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

async def dashboard(db: AsyncSession) -> DashboardReport:
    by_status = await count_by_status(db)
    status_totals: Dict[ArticleStatus, int] = {row.status: row.count for row in by_status}

    overview = Overview(
        total_articles=sum(status_totals.values()),
        published_articles=status_totals.get(ArticleStatus.PUBLISHED, 0),
        draft_articles=status_totals.get(ArticleStatus.DRAFT, 0),
        archived_articles=status_totals.get(ArticleStatus.ARCHIVED, 0),
        total_users=await _scalar(db, select(func.count(User.id))),
        active_users=await _scalar(db, select(func.count(User.id)).where(User.is_active.is_(True))),
        total_comments=await _scalar(
            db, select(func.count(Comment.id)).where(Comment.is_deleted.is_(False))
        ),
        total_views=await _scalar(db, select(func.coalesce(func.sum(Article.views), 0))),
        total_likes=await _scalar(db, select(func.count()).select_from(article_likes)),
    )

    year = extract("year", Article.created_at)
    month = extract("month", Article.created_at)
    result = await db.execute(
        select(year, month, func.count(Article.id))
        .group_by(year, month)
        .order_by(year.desc(), month.desc())
        .limit(DASHBOARD_MONTHS)
    )
    # Most recent buckets were fetched first; the chart reads oldest to newest
    by_month = [MonthCount(month=month_key(y, m), count=c) for y, m, c in reversed(result.all())]

    top = await ranked_articles(db, [], (Article.views.desc(), Article.id), DASHBOARD_TOP)
    likes = await count_likes(db, [a.id for a in top])
    recent = await ranked_articles(db, [], (Article.created_at.desc(), Article.id.desc()), DASHBOARD_TOP)

    return DashboardReport(
        overview=overview,
        charts=DashboardCharts(articles_by_status=by_status, articles_by_month=by_month),
        top_articles=[
            TopArticle(
                id=a.id,
                title=a.title,
                views=a.views or 0,
                likes=likes.get(a.id, 0),
                author=author_name(a),
                created_at=a.created_at,
            )
            for a in top
        ],
        recent_articles=[
            RecentArticle(id=a.id, title=a.title, status=a.status, author=author_name(a), created_at=a.created_at)
            for a in recent
        ],
    )


def _ranked(article: Article, likes: Dict[int, int]) -> RankedArticle:
    return RankedArticle(
        id=article.id,
        title=article.title,
        views=article.views or 0,
        likes=likes.get(article.id, 0),
        author=author_name(article),
        status=article.status,
        created_at=article.created_at,
    )


async def article_analytics(db: AsyncSession, window: DateWindow) -> ArticleAnalyticsReport:
    conditions = window.conditions()

    by_status = await count_by_status(db, conditions)

    year = extract("year", Article.created_at)
    month = extract("month", Article.created_at)
    result = await db.execute(
        select(year, month, func.count(Article.id), func.coalesce(func.sum(Article.views), 0))
        .where(*conditions)
        .group_by(year, month)
        .order_by(year, month)
    )
    by_month = [
        MonthViews(month=month_key(y, m), count=count, total_views=views or 0)
        for y, m, count, views in result.all()
    ]

    top_viewed = await ranked_articles(db, conditions, (Article.views.desc(), Article.id), REPORT_TOP)

    # Like counts live in the association table, so the ranking is done here
    in_window = await ranked_articles(db, conditions, (Article.created_at.desc(), Article.id.desc()), None)
    likes = await count_likes(db, [a.id for a in in_window])
    top_liked = sorted(in_window, key=lambda a: likes.get(a.id, 0), reverse=True)[:REPORT_TOP]
    likes.update(await count_likes(db, [a.id for a in top_viewed]))

    article_count = func.count(Article.id)
    result = await db.execute(
        select(
            Article.author_id,
            User.username,
            User.email,
            article_count,
            func.coalesce(func.sum(Article.views), 0),
        )
        .outerjoin(User, User.id == Article.author_id)
        .where(*conditions)
        .group_by(Article.author_id, User.username, User.email)
        .order_by(article_count.desc(), Article.author_id)
        .limit(REPORT_TOP)
    )
    by_author = [
        AuthorRollup(
            author_id=author_id,
            author_name=username or UNKNOWN_AUTHOR,
            author_email=email,
            article_count=count,
            total_views=views or 0,
        )
        for author_id, username, email, count, views in result.all()
    ]

    logger.debug(
        f"Article analytics computed: window={window}, articles={sum(s.count for s in by_status)}"
    )
    return ArticleAnalyticsReport(
        articles_by_status=by_status,
        articles_by_month=by_month,
        top_viewed_articles=[_ranked(a, likes) for a in top_viewed],
        top_liked_articles=[_ranked(a, likes) for a in top_liked],
        articles_by_author=by_author,
    )
