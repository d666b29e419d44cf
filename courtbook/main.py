"""Main FastAPI application.

Run with:
    uvicorn courtbook.main:app --reload
"""
import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from courtbook.api import availability, bookings, conflicts, courts, monitoring, venues
from courtbook.core.config import settings
from courtbook.core.database import init_db
from courtbook.core.errors import CourtbookError
from courtbook.core.metrics import PrometheusMetrics
from courtbook.schemas.monitoring import HealthStatus
from courtbook.services.scheduler import lifecycle_scheduler

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 500
VERY_SLOW_REQUEST_MS = 1000


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Courtbook availability service")
    logger.info(f"Debug mode: {settings.DEBUG}")

    if settings.CREATE_TABLES_ON_STARTUP:
        await init_db()

    if settings.LIFECYCLE_SWEEP_ENABLED:
        await lifecycle_scheduler.start()

    yield

    # Shutdown
    logger.info("Shutting down Courtbook availability service")
    await lifecycle_scheduler.stop()


# Create FastAPI app
app = FastAPI(
    title="Courtbook",
    description="Court slot availability and booking for sports venues",
    version="1.0.0",
    lifespan=lifespan,
)
app.state.metrics = PrometheusMetrics()

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def time_requests(request: Request, call_next):
    """Record request duration and log slow requests."""
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000

    response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"
    request.app.state.metrics.observe(
        "http.request.duration_ms", elapsed_ms, method=request.method
    )

    if elapsed_ms > VERY_SLOW_REQUEST_MS:
        logger.warning(
            f"Very slow request: {request.method} {request.url.path} took {elapsed_ms:.0f}ms"
        )
    elif elapsed_ms > SLOW_REQUEST_MS:
        logger.info(
            f"Slow request: {request.method} {request.url.path} took {elapsed_ms:.0f}ms"
        )

    return response


@app.exception_handler(CourtbookError)
async def courtbook_error_handler(request: Request, exc: CourtbookError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(venues.router)
app.include_router(courts.router)
app.include_router(availability.router)
app.include_router(bookings.router)
app.include_router(conflicts.router)
app.include_router(monitoring.router)


@app.get("/health", response_model=HealthStatus)
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "scheduler_running": lifecycle_scheduler.running,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "courtbook.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )
