"""Main application module for the Filevault service."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from filevault.adapters import ObjectStore
from filevault.adapters import build_object_store
from filevault.api.errors import register_exception_handlers
from filevault.api.files import router as files_router
from filevault.api.middlewares.metrics import metrics_middleware
from filevault.api.middlewares.parse_internal_headers import parse_internal_headers_middleware
from filevault.api.middlewares.tracing import tracing_middleware
from filevault.api.trash import router as trash_router
from filevault.config import Config
from filevault.config import get_config
from filevault.logging_config import setup_loki_logging
from filevault.monitoring import MetricsCollector
from filevault.monitoring import set_metrics_collector
from filevault.services.lifecycle import LifecycleManager
from filevault.services.sweeper import ExpirySweeper


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """FastAPI application lifespan handler."""
    try:
        await app.state.lifecycle_manager.ensure_buckets()
        logger.info(
            f"Buckets ready: active={app.state.config.active_bucket} trash={app.state.config.trash_bucket} "
            f"backend={app.state.config.storage_backend}"
        )

        yield

    finally:
        try:
            await app.state.object_store.close()
            logger.info("Object store closed")
        except Exception:
            logger.exception("Error shutting down object store")


def factory(config: Optional[Config] = None, store: Optional[ObjectStore] = None) -> FastAPI:
    """Factory function to create and configure the FastAPI application."""
    if config is None:
        load_dotenv()
        config = get_config()
    setup_loki_logging(config, "api")

    app = FastAPI(
        title="Filevault",
        description="File storage with a recoverable trash",
        docs_url="/docs" if config.enable_api_docs else None,
        redoc_url="/redoc" if config.enable_api_docs else None,
        lifespan=lifespan,
        debug=config.debug,
    )

    app.state.config = config
    app.state.object_store = store or build_object_store(config)
    app.state.lifecycle_manager = LifecycleManager.from_config(app.state.object_store, config)
    app.state.expiry_sweeper = ExpirySweeper(app.state.lifecycle_manager)
    logger.info(f"Lifecycle manager initialized (retention={config.trash_retention_days} days)")

    app.state.metrics_collector = MetricsCollector()
    set_metrics_collector(app.state.metrics_collector)

    # middleware("http") executes in REVERSE order
    app.middleware("http")(metrics_middleware)
    app.middleware("http")(tracing_middleware)
    app.middleware("http")(parse_internal_headers_middleware)

    register_exception_handlers(app)

    @app.get("/health", include_in_schema=False, response_class=JSONResponse)
    async def health():
        """Health check endpoint for monitoring."""
        return JSONResponse(content={"status": "healthy"})

    app.include_router(files_router, prefix="")
    app.include_router(trash_router, prefix="")

    return app
