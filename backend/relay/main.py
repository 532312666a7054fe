from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from relay.api.routes import limiter, router
from relay.clients.ffmpeg_media import FFmpegMediaClient
from relay.core.config import settings
from relay.core.errors import RelayError
from relay.core.logging import log


def _check_ffmpeg_presence() -> None:
    """Fail fast if ffmpeg or ffprobe cannot be executed.

    Raises:
        RuntimeError: If either binary is missing
    """
    FFmpegMediaClient().check_available()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI app."""
    log.info("RELAY_STARTUP")

    if settings.check_ffmpeg_on_startup:
        _check_ffmpeg_presence()

    # Ensure upload directory exists
    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    log.info(f"RELAY_READY upload_dir={upload_dir}")

    yield

    log.info("RELAY_SHUTDOWN")


app = FastAPI(lifespan=lifespan)

# Rate limiter shared with the router decorators
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Turns relay errors into {"message": ...} with the error's status."""
    log.warning(f"REQUEST_FAILED path={request.url.path} status={exc.status_code} error={exc.message}")
    return JSONResponse({"message": exc.message}, status_code=exc.status_code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error(f"REQUEST_CRASHED path={request.url.path} error={exc}", exc_info=exc)
    return JSONResponse({"message": "Internal server error"}, status_code=500)


@app.middleware("http")
async def body_size_limit_middleware(request: Request, call_next):
    """Rejects requests whose declared body exceeds MAX_REQUEST_BYTES.

    Raises:
        JSONResponse: 413 if body is too large
    """
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > settings.max_request_bytes:
        log.warning(f"body_too_large client={get_remote_address(request)} size={content_length}")
        return JSONResponse(
            {"message": f"Payload too large (max {settings.max_request_bytes // (1024 * 1024)}MB)"},
            status_code=413,
        )
    return await call_next(request)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    """Adds security headers to all responses."""
    response: Response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "no-referrer"
    return response


# API routes
app.include_router(router, prefix="/api")


@app.get("/")
def root() -> dict:
    """Root endpoint."""
    return {
        "name": "Locket Relay API",
        "docs": "/docs",
        "health": "/api/healthz",
        "endpoints": {
            "login": "/api/locket/login",
            "upload_media": "/api/locket/upload-media",
            "logs": "/api/logs/tail",
        },
    }
