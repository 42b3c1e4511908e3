# backend/admin_panel/articles/schemas.py
from ..models import CustomModel, Timestamp
from ..pagination import Pagination
from ..users.models import UserRole
from .models import ArticleStatus, TITLE_MAX_LENGTH
from pydantic import ConfigDict, Field, field_validator
from typing import Optional, List

class ArticleAuthor(CustomModel):
    id: int
    username: str
    email: str
    role: UserRole
    avatar: Optional[str] = None

class ArticleImage(CustomModel):
    file_id: int
    filename: Optional[str] = None
    mimetype: Optional[str] = None
    size: Optional[int] = None

class ArticleOut(CustomModel):
    id: int
    title: str
    content: str
    tags: List[str] = Field(default_factory=list)
    status: ArticleStatus
    views: int = 0
    likes_count: int = 0
    comment_count: int = Field(0, description="Non-deleted comments, counted at query time")
    author: Optional[ArticleAuthor] = None
    image: Optional[ArticleImage] = None
    image_url: Optional[str] = Field(None, description="Present only when the article has an image")
    created_at: Timestamp
    updated_at: Timestamp

class ArticleEnvelope(CustomModel):
    article: ArticleOut

class ArticleList(CustomModel):
    articles: List[ArticleOut]
    pagination: Pagination

class ArticleUpdate(CustomModel):
    """Partial update: only the fields sent are touched. Anything else in the body (id, views, ...) is ignored."""
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    status: Optional[ArticleStatus] = None

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags")
    @classmethod
    def _strip_tags(cls, v):
        if v is None:
            return v
        return [tag.strip() for tag in v if tag and tag.strip()]

class ArticleUpdated(CustomModel):
    message: str
    article: ArticleOut
