import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.db import create_tables
from app.routers import bulk_upload, categories
from app.schemas.bulk_upload import ImportResult
from app.services.errors import BulkImportError

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Catalog taxonomy
app.include_router(categories.router, prefix="/api/v1")

# Bulk import
app.include_router(bulk_upload.router, prefix="/api/v1")


@app.exception_handler(BulkImportError)
async def bulk_import_error_handler(request: Request, exc: BulkImportError):
    logger.info(f"Bulk import refused ({type(exc).__name__}): {exc.message}")
    result = ImportResult(
        success=False,
        message=exc.message,
        validation_passed=False,
        total_rows=0,
        success_count=0,
        error_count=0,
        errors=[],
    )
    return JSONResponse(status_code=exc.status_code, content=result.to_response())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error: {exc}\n{traceback.format_exc()}")
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.get("/health")
async def health_check():
    return {"status": "ok", "app": settings.APP_NAME}
