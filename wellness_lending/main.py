from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wellness_lending.api.v1.router import router as api_v1_router
from wellness_lending.config.database import get_db_context, init_db
from wellness_lending.config.logging import get_logger, setup_logging
from wellness_lending.config.settings import Settings, get_settings
from wellness_lending.services import ServiceFactory

logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Application factory for the FastAPI app.

    - Configures logging, title, version and debug mode from Settings.
    - Registers CORS.
    - Includes the versioned API router under /api/v1.
    """
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        # Schema creation for development and demos only; production uses migrations
        if settings.ENVIRONMENT != "production":
            init_db()
        yield

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        version=settings.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ORIGINS != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_v1_router, prefix=settings.API_V1_STR)

    @app.get("/health", tags=["system"])
    def health() -> dict:
        return {"status": "ok", "environment": settings.ENVIRONMENT}

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "wellness_lending.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development(),
    )


def run_sweep() -> None:
    """Apply every due expiry, overdue mark, queue lapse and block lift once."""
    settings = get_settings()
    setup_logging(settings)
    with get_db_context() as db:
        result = ServiceFactory(db, policy_defaults=settings.DEFAULT_POLICY_OVERRIDES).sweep().sweep()
    if not result.is_success:
        logger.error(f"Sweep failed: {result.message}")
        raise SystemExit(1)
    if result.data.failed:
        logger.warning("Sweep left entries unprocessed", extra={"failed": result.data.failed})


if __name__ == "__main__":
    run()
