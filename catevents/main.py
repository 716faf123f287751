# catevents/main.py
"""
FastAPI application entry point.
Includes request logging, error handlers, and all routers.
"""

import os
import time
from http import HTTPStatus

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catevents.config import settings
from catevents.database import create_tables
from catevents.errors import IngestError
from catevents.routers import events, health
from catevents.utils.logger import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Cat Event Bundle API",
    description="Receives event bundles from cat door detectors and serves the decoded events.",
    version="1.0.0",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

# ── CORS (allow dashboard on same LAN to call the API) ──────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Error Handlers ───────────────────────────────────────────────────────────
def error_body(status_code: int, message: str = "") -> dict:
    phrase = HTTPStatus(status_code).phrase
    return {"http_status_code": status_code, "http_status": phrase, "message": message or phrase}


@app.exception_handler(IngestError)
async def ingest_error_handler(request: Request, exc: IngestError):
    logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.status_code, exc.message))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(status.HTTP_500_INTERNAL_SERVER_ERROR),
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(events.router, prefix="/api/v1", tags=["Events"])
app.include_router(health.router, prefix="/api/v1", tags=["Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("Cat event backend starting up...")
    create_tables()
    logger.info("Database tables ready")
    os.makedirs(settings.EVENT_PATH, exist_ok=True)
    logger.info(f"Event media stored under {os.path.abspath(settings.EVENT_PATH)}")
    logger.info(f"Max event bundle size: {settings.MAX_EVENT_SIZE} bytes")
    logger.info(f"Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")


@app.on_event("shutdown")
async def shutdown():
    logger.info("Cat event backend shutting down...")
