"""FastAPI application factory with lifespan context manager."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.config import settings
from app.dependencies import init_production_deps
from app.logging_config import configure_logging
from app.routers import answer, health
from app.services.stream_transport import FAILURE_MESSAGE


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging and build the model client once per process."""
    configure_logging(
        json_logs=not settings.debug, log_level=settings.log_level, service=settings.app_name
    )
    init_production_deps(settings)
    structlog.get_logger().info("startup", model=settings.gemini_model)
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

if settings.cors_origins:
    from fastapi.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",")],
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return a JSON 500 response for any unhandled exception."""
    logger = structlog.get_logger()
    logger.exception("unhandled_exception", path=request.url.path, method=request.method)
    return JSONResponse(status_code=500, content={"error": FAILURE_MESSAGE})


app.include_router(health.router)
app.include_router(answer.router)


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    import uvicorn

    uvicorn.run("app.main:app", host=settings.host, port=settings.port)
