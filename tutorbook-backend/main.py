"""
TutorBook Backend API Server

FastAPI application for booking one-on-one and group tutoring sessions.
Serves booking intake, group matching, tutor assignment and the realtime
change feed.
"""
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tutorbook import __version__
from tutorbook.api.routes import availability, bookings, catalog, group_sessions, health, realtime
from tutorbook.database import init_redis, close_redis
from tutorbook.errors import BookingError
from tutorbook.services.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

API_DESCRIPTION = "Tutoring session booking, group matching and tutor assignment"


def error_envelope(code: str, message: str, details=None) -> dict:
    return {"error": {"code": code, "message": message, "details": details}}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Connect the change feed and start maintenance jobs for the lifetime
    of the process.
    """
    logger.info(f"TutorBook API {__version__} starting")
    await init_redis()
    start_scheduler()
    logger.info("Change feed connected, maintenance jobs scheduled")

    yield

    stop_scheduler()
    await close_redis()
    logger.info("TutorBook API stopped")


app = FastAPI(
    title="TutorBook API",
    description=API_DESCRIPTION,
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Tag each request with an id and log its outcome and latency"""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
    started = time.perf_counter()

    response = await call_next(request)

    elapsed_ms = (time.perf_counter() - started) * 1000
    response.headers["X-Request-ID"] = request_id
    logger.info(
        f"[{request_id}] {request.method} {request.url.path} "
        f"-> {response.status_code} ({elapsed_ms:.1f}ms)"
    )
    return response


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    """Render a booking-domain failure with its stable code"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{request.method} {request.url.path} rejected: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Auth failures already carry the envelope in detail
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = error_envelope(f"HTTP_{exc.status_code}", str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters, before booking intake sees them"""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_envelope("VALIDATION_ERROR", "Malformed request", jsonable_encoder(exc.errors())),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(
            "INTERNAL_ERROR",
            "An internal server error occurred",
            str(exc) if app.debug else None,
        ),
    )


@app.get("/health", tags=["Health"])
async def liveness():
    """Liveness probe; see /health/ready for dependency checks."""
    return {
        "status": "ok",
        "service": "tutorbook-api",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


for module in (health, catalog, bookings, group_sessions, availability, realtime):
    app.include_router(module.router)


@app.get("/", tags=["Root"])
async def root():
    return {
        "name": "TutorBook API",
        "version": __version__,
        "description": API_DESCRIPTION,
        "docs": "/api/docs",
        "health": "/health",
        "ready": "/health/ready",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "false").lower() == "true",
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
