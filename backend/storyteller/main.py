import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from storyteller.config import settings
from storyteller.database import create_tables
from storyteller.routers import books, folders
from storyteller.services.ocr_client import OcrClient, get_ocr_client

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Create database tables
    await create_tables()
    logger.info(f"{settings.app_name} ready on port {settings.port}")
    yield


app = FastAPI(
    title="Storyteller",
    description="PDF library with OCR text extraction for reading and read-aloud",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers; folders before books so /folders never hits /{book_id}
app.include_router(folders.router, prefix="/api/books/folders", tags=["Folders"])
app.include_router(books.router, prefix="/api/books", tags=["Books"])


@app.get("/api/health")
async def health_check():
    return {"status": "healthy", "service": settings.app_name}


@app.get("/api/health/ocr")
async def ocr_health_check(ocr: OcrClient = Depends(get_ocr_client)):
    """Whether the OCR server answers and has the configured model."""
    status = await ocr.test_connection()
    status["url"] = ocr.get_current_url()
    status["model"] = ocr.model
    return status


def run():
    """Entry point for the ``storyteller`` console script."""
    import uvicorn

    uvicorn.run("storyteller.main:app", host=settings.host, port=settings.port)
