from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from storyteller.database import Base

# Implicit folder every book belongs to when it has no folder of its own
ALL_FOLDER = "All"


class Folder(Base):
    """A named shelf books can be moved into."""
    __tablename__ = "folders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, server_default=func.now())

    books = relationship("Book", back_populates="folder", passive_deletes=True)
