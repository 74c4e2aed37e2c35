from storyteller.models.folder import Folder, ALL_FOLDER
from storyteller.models.book import Book, STATUS_PROCESSING, STATUS_COMPLETED, count_words

__all__ = [
    "Folder",
    "ALL_FOLDER",
    "Book",
    "STATUS_PROCESSING",
    "STATUS_COMPLETED",
    "count_words",
]
