"""FastAPI backend with Gradio interface for Draftwise."""

from contextlib import asynccontextmanager

import gradio as gr
import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from draftwise import __version__
from draftwise.api.routes import router
from draftwise.app.ui import build_ui
from draftwise.config.settings import settings
from draftwise.core.cache import response_cache
from draftwise.core.errors import register_error_handlers
from draftwise.core.logging import get_logger, setup_logging
from draftwise.core.metrics import metrics
from draftwise.core.middleware import ObservabilityMiddleware, SecurityHeadersMiddleware
from draftwise.core.rate_limit import RateLimiter
from draftwise.core.scheduler import MaintenanceScheduler

setup_logging()
logger = get_logger(__name__)


def create_app(mount_ui: bool = True) -> FastAPI:
    limiter = RateLimiter()
    scheduler = MaintenanceScheduler(cache=response_cache, limiter=limiter)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        scheduler.start()
        try:
            yield
        finally:
            scheduler.stop()

    app = FastAPI(title="Draftwise", version=__version__, lifespan=lifespan)
    app.state.rate_limiter = limiter
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    register_error_handlers(app)
    app.include_router(router)

    @app.get("/health")
    async def health() -> JSONResponse:
        """Health check endpoint."""
        return JSONResponse({"status": "ok", "service": "draftwise"})

    @app.get("/metrics")
    async def get_metrics() -> JSONResponse:
        """Metrics endpoint."""
        return JSONResponse(metrics.snapshot())

    if mount_ui:
        app = gr.mount_gradio_app(app, build_ui(), path="/")

    logger.info(f"Draftwise app created env={settings.env} ui={mount_ui}")
    return app


app = create_app()


def main() -> None:
    logger.info("Starting Draftwise...")
    uvicorn.run(app, host="0.0.0.0", port=7860)


if __name__ == "__main__":
    main()
