# backend/admin_panel/images/models.py
from sqlalchemy import Column, Integer, String, LargeBinary, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from ..database import Base

class ImageFile(Base):
    __tablename__ = "image_files"

    id = Column(Integer, primary_key=True, index=True)
    filename = Column(String(255), nullable=True)
    content_type = Column(String(100), nullable=True)
    length = Column(Integer, default=0, nullable=False)
    chunk_size = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self) -> str:
        return f"ImageFile(id={self.id}, filename={self.filename!r}, length={self.length})"

class ImageChunk(Base):
    __tablename__ = "image_chunks"
    __table_args__ = (
        UniqueConstraint("file_id", "n", name="uq_image_chunks_file_n"),
    )

    id = Column(Integer, primary_key=True)
    file_id = Column(Integer, ForeignKey("image_files.id", ondelete="CASCADE"), nullable=False, index=True)
    n = Column(Integer, nullable=False)  # chunk index, 0-based
    data = Column(LargeBinary, nullable=False)

    def __repr__(self) -> str:
        return f"ImageChunk(file_id={self.file_id}, n={self.n})"
