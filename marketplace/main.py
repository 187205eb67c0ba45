"""FastAPI application entry point."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from marketplace.config import settings
from marketplace.errors import FAILED_REQUEST, PARAM_MISSING
from marketplace.middleware import BodySizeLimitMiddleware
from marketplace.routers import categories, identity, jobs, requests, reviews, users
from marketplace.schemas.envelope import error_response

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _check_secrets() -> None:
    if settings.is_production and (
        settings.jwt_secret.startswith("dev-") or settings.jwt_refresh_secret.startswith("dev-")
    ):
        raise RuntimeError("JWT secrets must be configured in production")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    from marketplace.services.timeout_queue import recover_timeouts, run_timeout_consumer

    _check_secrets()
    timeout_task = asyncio.create_task(run_timeout_consumer())
    await recover_timeouts()

    yield

    timeout_task.cancel()
    try:
        await timeout_task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    title="Artisan Marketplace",
    description="Connects clients with artisans: jobs, offers, reviews",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else FAILED_REQUEST
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(message),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content=error_response(PARAM_MISSING))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_response(FAILED_REQUEST))


app.include_router(identity.router)
app.include_router(users.router)
app.include_router(categories.router)
app.include_router(jobs.router)
app.include_router(requests.router)
app.include_router(reviews.router)


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
