"""
Mini-app catalog backend - main application entry
Persistence endpoint for the catalog snapshot edited by the shop mini-app

Main modules:
- snapshot storage (GET/POST /config)
- catalog, cart and checkout services over the snapshot
- local DuckDB cache for offline reads

Stack: FastAPI + pydantic + DuckDB + httpx
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .api import api_router
from .config.settings import Settings, settings as default_settings
from .core.error_handler import (
    application_error_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .core.exceptions import BaseApplicationError
from .services.config_repository import ConfigRepository

logger = logging.getLogger(__name__)


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    repository: ConfigRepository = app.state.config_repository
    if not repository.check_writable():
        # reads keep working, POST /config answers CONFIG_NOT_PERSISTED
        logger.warning("Configuration storage %s is read-only", repository.path)
    logger.info("Configuration storage: %s", repository.path)

    yield


def create_app(settings: Optional[Settings] = None, repository: Optional[ConfigRepository] = None) -> FastAPI:
    """Create the FastAPI application"""
    settings = settings or default_settings
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="Catalog configuration API for the shop mini-app",
        debug=settings.debug,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.config_repository = repository or ConfigRepository(settings=settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BaseApplicationError, application_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check():
        repository: ConfigRepository = app.state.config_repository
        return {
            "status": "healthy",
            "version": settings.api_version,
            "storage": "writable" if repository.check_writable() else "read-only",
            "config_stored": repository.exists(),
        }

    @app.get("/")
    async def root():
        return {
            "name": settings.api_title,
            "version": settings.api_version,
            "description": "Catalog configuration API for the shop mini-app"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
