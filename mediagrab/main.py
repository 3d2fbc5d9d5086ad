"""
FastAPI media format service
Lists downloadable formats for social media URLs and streams the chosen one
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from . import __version__
from .config import settings
from .errors import MediaGrabError
from .models import (
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
    StatusResponse,
    VideoInfoRequest,
    VideoInfoResponse,
)
from .platforms import Platform
from .resolver import MediaResolver, resolver
from .storage import storage

# Logging configuration
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

start_time = time.time()


def get_resolver() -> MediaResolver:
    return resolver


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for startup/shutdown tasks"""
    # Startup
    logger.info("🚀 Starting media format service...")
    logger.info(f"Version: {__version__}")
    logger.info(f"yt-dlp version: {resolver.engine.version}")
    logger.info(f"🌐 Proxy: {settings.proxy_host or 'not configured'}")
    logger.info(f"🍪 Cookies: {'configured' if settings.has_cookies else 'NOT configured (bot detection risk)'}")

    await storage.start_cleanup_scheduler()

    yield

    # Shutdown
    logger.info("Shutting down media format service...")
    await storage.stop_cleanup_scheduler()


# Create FastAPI app
app = FastAPI(
    title="Media Format Service",
    description="Resolves downloadable formats for social media URLs using yt-dlp",
    version=__version__,
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "Content-Length"],
)


def _error_response(status_code: int, error: ErrorDetail) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error).model_dump(mode='json', by_alias=True, exclude_none=True),
    )


# ============================================================================
# API ENDPOINTS
# ============================================================================


@app.post("/api/video-info", response_model=VideoInfoResponse)
async def video_info(
    request: VideoInfoRequest,
    media: MediaResolver = Depends(get_resolver),
):
    """
    Fetch metadata and the ranked list of downloadable formats

    **Flow:**
    1. Classify the platform from the URL host
    2. Try extraction strategies in order until one succeeds
    3. Normalize, rank and deduplicate the formats
    4. Append the synthetic MP3 option
    """
    data = await media.get_video_info(request.url)
    return VideoInfoResponse(data=data)


@app.get("/api/download/{format_id}")
async def download(
    format_id: str,
    url: Optional[str] = None,
    media: MediaResolver = Depends(get_resolver),
):
    """
    Materialize the chosen format and stream it as an attachment.

    The temp file is deleted shortly after the stream ends, fails or is abandoned.
    """
    prepared = await media.prepare_download(url, format_id)

    logger.info(f"📤 Streaming {prepared.filename} ({prepared.size / 1024 / 1024:.2f} MB)")

    return StreamingResponse(
        media.planner.stream_file(prepared.path),
        media_type=prepared.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{prepared.filename}"',
            "Content-Length": str(prepared.size),
            "Cache-Control": "no-cache, no-store, must-revalidate",
        },
    )


@app.get("/api/test", response_model=StatusResponse)
async def test_api(media: MediaResolver = Depends(get_resolver)):
    """Liveness probe reporting auxiliary credential configuration"""
    return StatusResponse(
        message="Video API is working!",
        proxy_configured=media.settings.has_proxy,
        cookies_configured=media.settings.has_cookies,
        youtube_strategies=len(media.catalog.strategies_for(Platform.YOUTUBE)),
        platforms=[p for p in Platform if p != Platform.UNKNOWN],
        yt_dlp_version=media.engine.version,
    )


@app.get("/")
async def root():
    """Root endpoint with service info"""
    return {
        "service": "Media Format Service",
        "version": __version__,
        "status": "running",
        "uptime_seconds": round(time.time() - start_time, 1),
        "endpoints": {
            "video_info": "/api/video-info",
            "download": "/api/download/{formatId}?url=...",
            "test": "/api/test",
        },
        "docs": "/docs",
    }


# ============================================================================
# ERROR HANDLERS
# ============================================================================


@app.exception_handler(MediaGrabError)
async def media_error_handler(request: Request, exc: MediaGrabError):
    """Render taxonomy errors with their mapped status"""
    logger.error(f"❌ {request.url.path}: {exc.code.value} ({exc.status_code}) {exc.message}")
    return _error_response(exc.status_code, exc.to_detail())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are input errors, not 422s"""
    logger.warning(f"⚠️ {request.url.path}: invalid request body: {exc.errors()}")
    return _error_response(400, ErrorDetail(
        code=ErrorCode.INVALID_URL,
        message="Request body must be a JSON object with a string \"url\" field",
        is_transient=False,
    ))


@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    """Custom 500 handler"""
    logger.exception("Internal server error")
    return _error_response(500, ErrorDetail(
        code=ErrorCode.SERVER_ERROR,
        message="Internal server error. Please try again later.",
        is_transient=True,
    ))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
