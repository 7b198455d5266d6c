"""Main FastAPI application."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lendtrack import __version__
from lendtrack.config import config
from lendtrack.database import init_db
from lendtrack.errors import DataIntegrityViolation, LendtrackError
from lendtrack.logging_config import configure_logging
from lendtrack.services.users import ensure_initial_admin

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan manager."""
    # Startup
    await init_db()
    await ensure_initial_admin()
    yield


configure_logging(debug=config.DEBUG)
config.ensure_data_dirs()


app = FastAPI(
    title="Lendtrack",
    description="Inventory lending tracker with an auditable history",
    version=__version__,
    lifespan=lifespan,
)


access_logger = logging.getLogger("lendtrack.access")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming requests similar to the access log."""

    response = await call_next(request)
    client_host = "-"
    if request.client is not None:
        client_host = request.client.host or "-"

    access_logger.info(
        '%s - "%s %s" %s',
        client_host,
        request.method,
        request.url.path,
        response.status_code,
    )
    return response


@app.exception_handler(LendtrackError)
async def lendtrack_error_handler(
    request: Request, exc: LendtrackError
) -> JSONResponse:
    """Render domain errors without leaking internal details."""
    if isinstance(exc, DataIntegrityViolation):
        logger.error(
            "Data integrity violation on %s %s: %s %s",
            request.method,
            request.url.path,
            exc.message,
            exc.context,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.public_message, **exc.public_context},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# Health check endpoint
@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


# Import routes
from lendtrack.routes import admin, auth, dashboard, items, lending  # noqa: E402

app.include_router(auth.router)
app.include_router(items.router)
app.include_router(lending.router)
app.include_router(admin.router)
app.include_router(dashboard.router)
