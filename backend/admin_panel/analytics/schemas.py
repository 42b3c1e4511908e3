# backend/admin_panel/analytics/schemas.py
from ..models import CustomModel, Timestamp
from ..articles.models import ArticleStatus
from typing import List, Optional

class Overview(CustomModel):
    total_articles: int = 0
    published_articles: int = 0
    draft_articles: int = 0
    archived_articles: int = 0
    total_users: int = 0
    active_users: int = 0
    total_comments: int = 0
    total_views: int = 0
    total_likes: int = 0

class StatusCount(CustomModel):
    status: ArticleStatus
    count: int

class MonthCount(CustomModel):
    month: str  # YYYY-MM
    count: int

class MonthViews(MonthCount):
    total_views: int = 0

class DashboardCharts(CustomModel):
    articles_by_status: List[StatusCount]
    articles_by_month: List[MonthCount]

class TopArticle(CustomModel):
    id: int
    title: str
    views: int
    likes: int
    author: str
    created_at: Timestamp

class RecentArticle(CustomModel):
    id: int
    title: str
    status: ArticleStatus
    author: str
    created_at: Timestamp

class DashboardReport(CustomModel):
    overview: Overview
    charts: DashboardCharts
    top_articles: List[TopArticle]
    recent_articles: List[RecentArticle]

class RankedArticle(TopArticle):
    status: ArticleStatus

class AuthorRollup(CustomModel):
    author_id: int
    author_name: str
    author_email: Optional[str] = None
    article_count: int
    total_views: int = 0

class ArticleAnalyticsReport(CustomModel):
    articles_by_status: List[StatusCount]
    articles_by_month: List[MonthViews]
    top_viewed_articles: List[RankedArticle]
    top_liked_articles: List[RankedArticle]
    articles_by_author: List[AuthorRollup]
