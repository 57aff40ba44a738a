"""
PT GRADER Backend API
Fitness test grading with live repetition counting

FastAPI application entry point. Pose estimation runs on the client; this
service counts reps from landmark streams and grades the results.
"""

import logging
import sys
import time
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from core.config import settings
from pt_service.router import router as pt_router, get_session_handler
from shared.utils import LOG_DATE_FORMAT, LOG_FORMAT, error_response, setup_logger

# ============================================
# Configure Root Logger First
# ============================================
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=LOG_FORMAT,
    datefmt=LOG_DATE_FORMAT,
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = setup_logger("ptgrader.main")
request_logger = setup_logger("ptgrader.requests", level=logging.DEBUG if settings.DEBUG else logging.INFO)


# ============================================
# Request Logging Middleware
# ============================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all incoming requests and responses with timing."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        client_ip = request.client.host if request.client else "unknown"
        query_string = f"?{request.url.query}" if request.url.query else ""
        request_logger.info(f"{request.method} {request.url.path}{query_string}")
        request_logger.debug(f"    Client: {client_ip}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            request_logger.error(
                f"{request.method} {request.url.path} -> ERROR: {type(e).__name__}: {e} ({process_time:.1f}ms)"
            )
            request_logger.error(traceback.format_exc())
            raise

        process_time = (time.time() - start_time) * 1000
        log = request_logger.warning if response.status_code >= 400 else request_logger.info
        log(f"{request.method} {request.url.path} -> {response.status_code} ({process_time:.1f}ms)")
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    logger.info(f"{settings.APP_NAME} API starting up...")
    logger.info(
        f"Debounce: {settings.DEBOUNCE_FRAMES} frames, min visibility: {settings.MIN_VISIBILITY}, "
        f"max sessions: {settings.MAX_ACTIVE_SESSIONS}"
    )

    yield

    handler = get_session_handler()
    logger.info(f"{settings.APP_NAME} API shutting down ({len(handler.active_sessions)} sessions open)")


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Physical fitness test grading with pose-based rep counting",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=500,
        content=error_response("Internal server error", error_code="INTERNAL_ERROR"),
    )


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "pt-grader-api",
        "active_sessions": len(get_session_handler().active_sessions),
    }


app.include_router(pt_router, prefix="/api/pt", tags=["PT Grader"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
