"""
Main FastAPI application for the Lab Records backend.
Handles CORS, request logging middleware, lifespan events, and router registration.
"""
import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.config import settings
from app.database import AsyncSessionLocal, close_db, init_db
from app.routers import auth, exports, health, lab_records, preferences, sections, templates
from app.services.session_store import SessionStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup / shutdown helpers
# ---------------------------------------------------------------------------

async def _check_database() -> None:
    """Initialise DB tables and verify the connection."""
    try:
        await init_db()
        logger.info("✓ Database connection OK")
    except Exception as exc:
        logger.error("✗ Database connection failed: %s", exc)
        raise


async def _purge_sessions() -> None:
    """Drop cookie sessions that expired while the server was down."""
    async with AsyncSessionLocal() as session:
        purged = await SessionStore(session).purge_expired()
        await session.commit()
    logger.info("✓ Session store ready (%d expired sessions removed)", purged)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting Lab Records backend …")
    logger.info("=" * 60)

    # 1 - Database (required; raises on failure)
    await _check_database()
    await _purge_sessions()

    # 2 - Upload directory
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    logger.info("✓ Upload directory: %s", os.path.abspath(settings.UPLOAD_DIR))

    logger.info("=" * 60)
    logger.info("  Lab Records backend ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("  Health     : http://%s:%d/api/health", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down Lab Records backend …")
    await close_db()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Lab Records API",
    description=(
        "**Lab Records** - write, arrange and export laboratory records.\n\n"
        "Create a record from a subject template, edit its sections, attach "
        "images, preview it as HTML and download it as PDF or Word.\n\n"
        "Key endpoints:\n"
        "- `POST /api/auth/register` - create an account\n"
        "- `POST /api/lab-records` - create a record from a template\n"
        "- `PATCH /api/sections/{id}` - edit a section\n"
        "- `POST /api/sections/{id}/images` - upload an image\n"
        "- `GET  /api/lab-records/{id}/export` - download PDF / DOCX\n"
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    # Skip health-check polling and static images
    path = request.url.path
    if path not in ("/api/health", "/") and not path.startswith(settings.UPLOAD_URL_PREFIX):
        logger.info(
            "%s %s → %d  (%.2f ms)",
            request.method,
            path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters are a 400, with the field errors attached."""
    logger.info("Rejected %s %s: %d validation errors", request.method, request.url.path, len(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Invalid request data",
            "errors": jsonable_encoder(exc.errors(), exclude={"input", "ctx"}),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log any unhandled exception and answer with a generic 500."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,            prefix="/api/health",         tags=["Health"])
app.include_router(auth.router,              prefix="/api/auth",           tags=["Auth"])
app.include_router(templates.router,         prefix="/api/templates",      tags=["Templates"])
app.include_router(lab_records.router,       prefix="/api/lab-records",    tags=["Lab Records"])
app.include_router(exports.router,           prefix="/api/lab-records",    tags=["Export"])
app.include_router(sections.router,          prefix="/api/sections",       tags=["Sections"])
app.include_router(sections.images_router,   prefix="/api/section-images", tags=["Sections"])
app.include_router(preferences.router,       prefix="/api/user",           tags=["Preferences"])

app.mount(
    settings.UPLOAD_URL_PREFIX,
    StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
    name="uploads",
)


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

@app.get("/", tags=["Root"], include_in_schema=False)
async def root():
    """API root - returns basic service info."""
    return {
        "name": "Lab Records API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
        "endpoints": {
            "auth": "/api/auth",
            "templates": "/api/templates",
            "lab_records": "/api/lab-records",
            "sections": "/api/sections",
            "preferences": "/api/user/preferences",
            "uploads": settings.UPLOAD_URL_PREFIX,
        },
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
