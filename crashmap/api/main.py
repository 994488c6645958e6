"""FastAPI application serving spatial crash statistics."""
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crashmap import __version__
from crashmap.api.routers import crashes, health, summary
from crashmap.exceptions import CrashMapError
from crashmap.services.data_meta import get_data_meta_reader
from crashmap.utils.config import settings
from crashmap.utils.logging import get_logger, setup_logging

setup_logging("api", settings.logging.level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info(
        "Starting Crash Map Query API",
        database=settings.database.path,
        read_only=settings.database.read_only,
        data_version=get_data_meta_reader().data_version_label(),
        startup_time=datetime.now(),
    )

    yield

    logger.info("Shutting down Crash Map Query API")


app = FastAPI(
    title="Crash Map Query API",
    description="Polygon summaries and crash points over a read-only regional crash extract",
    version=__version__,
    lifespan=lifespan,
)

# Comma-separated list of allowed origins; never "*" in production
allowed_origins = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:8000"
).split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.exception_handler(CrashMapError)
async def crash_map_error_handler(request: Request, exc: CrashMapError) -> JSONResponse:
    """Render the error taxonomy as ``{"error": message}``."""
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies as 400 rather than 422."""
    errors = exc.errors()
    if any(error.get("type") == "json_invalid" for error in errors):
        message = "Invalid JSON payload."
    else:
        message = "Invalid request payload."
    logger.debug("Rejected request body", path=request.url.path, errors=len(errors))
    return JSONResponse(status_code=400, content={"error": message})


app.include_router(health.router)
app.include_router(summary.router)
app.include_router(crashes.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "crashmap.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.logging.level.lower(),
    )
