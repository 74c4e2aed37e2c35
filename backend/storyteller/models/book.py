from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from storyteller.database import Base
from storyteller.models.folder import ALL_FOLDER

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"


def count_words(text: str) -> int:
    """Whitespace-delimited token count."""
    return len((text or "").split())


class Book(Base):
    """An uploaded PDF and the text extracted from it so far."""
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(500), nullable=False)
    cover = Column(String(1000), nullable=True)  # Cover image URL
    pdf_url = Column(String(1000), nullable=False)  # Permanent copy of the upload
    folder_id = Column(Integer, ForeignKey("folders.id", ondelete="SET NULL"), nullable=True, index=True)
    downloads = Column(Integer, nullable=False, default=0)
    tts_requests = Column(Integer, nullable=False, default=0)
    content = Column(Text, nullable=False, default="")
    chapters = Column(JSON, nullable=False, default=list)  # [{"title": ..., "page": ...}]
    words = Column(Integer, nullable=False, default=0)
    total_pages = Column(Integer, nullable=False, default=0)
    processed_pages = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=STATUS_PROCESSING)
    summary = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    folder = relationship("Folder", back_populates="books", lazy="joined")

    @property
    def folder_name(self) -> str:
        return self.folder.name if self.folder is not None else ALL_FOLDER

    def to_summary(self) -> dict:
        # Key names are the ones the web client reads
        return {
            "_id": self.id,
            "title": self.title,
            "cover": self.cover,
            "url": self.pdf_url,
            "folder": self.folder_name,
            "downloads": self.downloads or 0,
            "ttsRequests": self.tts_requests or 0,
            "words": self.words or 0,
            "totalPages": self.total_pages or 0,
            "processedPages": self.processed_pages or 0,
            "status": self.status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def to_detail(self) -> dict:
        data = self.to_summary()
        data.update({
            "content": self.content or "",
            "chapters": self.chapters or [],
            "summary": self.summary,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        })
        return data
