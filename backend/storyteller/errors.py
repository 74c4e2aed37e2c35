"""Domain errors raised by the catalog and ingestion services."""


class StorytellerError(Exception):
    """Base class for all application errors."""


class BookNotFound(StorytellerError):
    def __init__(self, book_id: int):
        super().__init__(f"Book {book_id} not found")
        self.book_id = book_id


class FolderNotFound(StorytellerError):
    def __init__(self, name: str):
        super().__init__(f"Folder '{name}' not found")
        self.name = name


class FolderExists(StorytellerError):
    def __init__(self, name: str):
        super().__init__(f"Folder '{name}' already exists")
        self.name = name


class FolderInUse(StorytellerError):
    def __init__(self, name: str, book_count: int):
        super().__init__(f"Folder '{name}' still holds {book_count} book(s)")
        self.name = name
        self.book_count = book_count


class InvalidDocument(StorytellerError):
    """The uploaded file could not be read as a PDF."""


class RenderError(StorytellerError):
    """A PDF page could not be rasterized."""


class OcrError(StorytellerError):
    """The OCR service did not return text for an image."""


class StorageError(StorytellerError):
    """Uploading to or downloading from remote storage failed."""


class InvalidAction(StorytellerError):
    def __init__(self, action: str):
        super().__init__(f"Invalid action '{action}'")
        self.action = action
