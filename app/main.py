"""Atlantic Pool FastAPI application.

Standings synchronisation and scoring for the division prediction pool.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import admin, cron, health, leaderboard, predictions, standings
from app.config import get_settings
from app.errors import PoolError
from app.storage import connect_storage

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("starting_atlantic_pool", version="0.1.0")
    # Never raises; an unreachable database installs a rejecting stub
    app.state.storage = await connect_storage(settings)
    yield
    await app.state.storage.dispose()
    logger.info("shutting_down_atlantic_pool")


# Create FastAPI application
app = FastAPI(
    title="Atlantic Pool",
    description="Division standings synchronisation and prediction scoring",
    version="0.1.0",
    lifespan=lifespan,
)

# Include API routers
app.include_router(health.router)
app.include_router(standings.router)
app.include_router(cron.router)
app.include_router(admin.router)
app.include_router(predictions.router)
app.include_router(leaderboard.router)


# Error handlers
@app.exception_handler(PoolError)
async def pool_error_handler(request: Request, exc: PoolError):
    """Report service errors in the ``{success, error}`` envelope."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        error=str(exc),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc)},
    )


@app.exception_handler(500)
async def server_error_handler(request: Request, exc):
    """Custom 500 handler."""
    logger.error("server_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error"},
    )
