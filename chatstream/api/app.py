"""FastAPI application serving hardware metrics for the chat client.

Exposes `GET /api/gpu-metrics` (a briefly cached probe of the GPU and the
model server) and `/health`. CORS is open so the NiceGUI page or a
browser dashboard on another port can poll it.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatstream import __version__
from chatstream.api.routes import router as metrics_router
from chatstream.hardware.config import get_hardware_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Log the probe settings on startup.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.
    """
    config = get_hardware_config()
    logger.info(
        f"Starting chatstream API: model server port {config.model_server_port}, "
        f"snapshots fresh for {config.freshness_window}s, sudo={config.use_sudo}"
    )
    yield
    logger.info("Shutting down chatstream API...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="Chatstream API",
        description=(
            "Hardware metrics for a locally hosted language-model server. "
            "Snapshots are cached briefly so dashboards can poll frequently."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(metrics_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "chatstream"}

    return application


app = create_app()
