import json
from typing import List, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class OcrConfig(BaseModel):
    """Connection details for the vision OCR service."""
    url: str = "http://localhost:11434"
    urls: List[str] = []
    model: str = "qwen2.5vl:7b"
    api_key: Optional[str] = None
    max_image_size: int = 2240


class StorageConfig(BaseModel):
    """Credentials for the remote object store (Cloudinary-style upload API)."""
    cloud_name: str = ""
    api_key: str = ""
    api_secret: str = ""
    folder: str = "storyteller"
    api_base_url: str = "https://api.cloudinary.com/v1_1"


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///./data/storyteller.db"

    # External services, given as JSON credential blobs
    ocr_credentials: str = "{}"
    storage_credentials: str = "{}"

    # Server
    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: List[str] = ["*"]

    # Ingestion
    temp_dir: str = "./data/tmp"
    preview_pages: int = 5
    page_batch_size: int = 5
    placeholder_cover_url: str = "https://placehold.co/300x450?text=No+Cover"

    # App settings
    app_name: str = "Storyteller"
    debug: bool = False
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "allow"

    def ocr_config(self) -> OcrConfig:
        return OcrConfig(**json.loads(self.ocr_credentials or "{}"))

    def storage_config(self) -> StorageConfig:
        return StorageConfig(**json.loads(self.storage_credentials or "{}"))


settings = Settings()
