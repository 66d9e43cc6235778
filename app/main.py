from contextlib import asynccontextmanager
import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.api.v1.router import api_router
from app.core.exceptions import PutawayError
from app.database import init_db, async_session_factory


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create tables that do not exist yet
    """
    # Startup
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)
    await init_db()

    yield

    # Shutdown
    logger.info("Shutting down...")


# OpenAPI Tags with detailed descriptions
OPENAPI_TAGS = [
    {"name": "Products", "description": "Product master: SKU, EAN/UPC and category"},
    {"name": "Goods Receipt Notes", "description": "GRN recording and QC quantity split per line"},
    {"name": "WMS (Bins/PutAway)", "description": "Bin management and category-based bin suggestion"},
    {"name": "PutAway", "description": "Scanner putaway: queue, scan product, scan bin, confirm, audit"},
]

FULL_API_DESCRIPTION = """
## Putaway Reconciliation Engine API

Goods receipt, QC triage and putaway for a warehouse floor.

### Flow

| Step | Endpoint |
|------|----------|
| Record receipt | `POST /api/v1/grns` |
| Find work | `GET /api/v1/putaway/queue` |
| Scan product | `POST /api/v1/putaway/scan-product` |
| Scan bin | `POST /api/v1/putaway/scan-bin` |
| Confirm quantity | `POST /api/v1/putaway/confirm` |

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Bad Request - Quantity identity or state violation |
| 404 | Not Found - GRN line, bin or SKU doesn't exist |
| 409 | Conflict - Line already complete, bin conflict, concurrent update |
| 422 | Unprocessable Entity - Insufficient quantity, capacity exceeded, no suitable bin |
| 500 | Internal Server Error |

Business errors are returned as `{"error", "code", "details"}`.
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=FULL_API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


@app.exception_handler(PutawayError)
async def putaway_exception_handler(request: Request, exc: PutawayError):
    """Render putaway business errors as {error, code, details}."""
    logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict()),
    )


# Global exception handler for anything unhandled
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return error information; tracebacks only in debug mode."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)

    error_detail = {
        "error": str(exc),
        "type": type(exc).__name__,
        "path": str(request.url.path),
        "method": request.method,
    }
    if settings.DEBUG:
        error_detail["traceback"] = traceback.format_exc()

    return JSONResponse(
        status_code=500,
        content=error_detail
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError
    from datetime import datetime, timezone

    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown"
        }
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except (SQLAlchemyError, OSError) as e:
        logger.error("Health check database error: %s", e)
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }
