# backend/admin_panel/articles/models.py
from enum import Enum as PyEnum
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Boolean, JSON, Table,
    Enum as SQLEnum, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base

class ArticleStatus(str, PyEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"

TITLE_MAX_LENGTH = 200

# A user can like an article at most once
article_likes = Table(
    "article_likes",
    Base.metadata,
    Column("article_id", Integer, ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

class Article(Base):
    __tablename__ = "articles"
    __table_args__ = (
        Index("ix_articles_author_created", "author_id", "created_at"),
        Index("ix_articles_status_created", "status", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(TITLE_MAX_LENGTH), nullable=False)
    content = Column(Text, nullable=False)
    tags = Column(JSON, nullable=False, default=list)  # ordered list of strings
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(
        SQLEnum(ArticleStatus, name="article_status", values_callable=lambda e: [m.value for m in e]),
        default=ArticleStatus.DRAFT,
        nullable=False,
    )
    views = Column(Integer, default=0, nullable=False)

    # Image reference into the blob store; all four are set together or not at all
    image_file_id = Column(Integer, nullable=True)
    image_filename = Column(String(255), nullable=True)
    image_mimetype = Column(String(100), nullable=True)
    image_size = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    author = relationship("User", back_populates="articles")
    likes = relationship("User", secondary=article_likes)

    @property
    def has_image(self) -> bool:
        return self.image_file_id is not None

    def __repr__(self) -> str:
        return f"Article(id={self.id}, title={self.title!r}, status={self.status!r})"
    def __str__(self) -> str:
        return self.title

class Comment(Base):
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    content = Column(Text, nullable=False, default="")
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self) -> str:
        return f"Comment(id={self.id}, article_id={self.article_id}, is_deleted={self.is_deleted})"
