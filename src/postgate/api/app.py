"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from postgate.api.auth import router as auth_router
from postgate.api.pages import router as pages_router
from postgate.api.rpc import router as rpc_router
from postgate.app_logging import configure_logging
from postgate.containers import AppContainer


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        settings = app.state.container.settings
        logger.info(
            "Starting: server_url=%s auth=%s",
            settings.server_url,
            settings.auth_service_url or "in-process",
        )
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(rpc_router)
    if container.in_process_auth is not None:
        app.include_router(auth_router)
    app.include_router(pages_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
