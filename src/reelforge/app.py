"""FastAPI application factory."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reelforge.api.errors import register_exception_handlers
from reelforge.api.routes import videos
from reelforge.context import create_context
from reelforge.core.config import Settings, configure_logging
from reelforge.services.lifecycle.manager import LifecycleManager

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Handles startup and shutdown tasks:
    - Startup: Load settings, configure logging, build the generation context
    - Shutdown: Report operations that were still pending

    Pending operations and the history ledger live only as long as the process.
    """
    settings = Settings()  # type: ignore[call-arg]
    configure_logging(settings)

    context = create_context(settings)
    app.state.manager = LifecycleManager(context)

    logger.info(
        "application.startup",
        output_dir=str(context.materializer.output_dir),
        default_model=settings.default_model,
    )

    yield

    logger.info(
        "application.shutdown",
        pending_operations=len(context.operations),
        artifacts=len(context.history),
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="Reelforge API",
        description="Video generation lifecycle: submit, poll, save, extend and clean up",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Videos router has prefix="/api/videos" in definition
    app.include_router(videos.router)
    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """Health check endpoint.

        Returns:
            200: {"status": "healthy", "pending_operations": N, "artifacts": M}
        """
        context = app.state.manager.context
        logger.debug("health_check.success")
        return {
            "status": "healthy",
            "pending_operations": len(context.operations),
            "artifacts": len(context.history),
        }

    return app


# ASGI app instance
app = create_app()
