"""Main application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Response
from prometheus_fastapi_instrumentator import Instrumentator

from quote_engine.api.errors import register_error_handlers
from quote_engine.api.routes import admin, contractors, penalties, pricing, quote_requests, quotes
from quote_engine.config import Settings, settings as default_settings
from quote_engine.container import Services, build_services
from quote_engine.db.models import Base
from quote_engine.logging_config import setup_logging
from quote_engine.worker.scheduler import setup_scheduler

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def create_app(services: Optional[Services] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Prebuilt service graph; when omitted it is built from
            settings at startup and torn down at shutdown
        settings: Settings used when services are built here
    """
    settings = settings or (services.settings if services else default_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting quote engine...")
        owns_services = app.state.services is None

        if owns_services:
            setup_logging()
            app.state.services = build_services(settings)
            engine = app.state.services.engine
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        if owns_services and settings.scheduler_enabled:
            scheduler = setup_scheduler(app.state.services.tasks, settings)
            scheduler.start()
            app.state.scheduler = scheduler
            logger.info("Scheduler started")

        yield

        # Shutdown
        logger.info("Shutting down...")

        if app.state.scheduler:
            app.state.scheduler.shutdown()

        if owns_services:
            await app.state.services.close()

        logger.info("Shutdown complete")

    app = FastAPI(
        title="Quote Engine",
        description="Quote lifecycle and financial settlement for the solar marketplace",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.scheduler = None

    # Add Prometheus instrumentation
    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/health", "/favicon.ico"],
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )
    instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])

    register_error_handlers(app)

    # Include API routes
    app.include_router(quote_requests.router)
    app.include_router(quotes.router)
    app.include_router(contractors.router)
    app.include_router(admin.router)
    app.include_router(penalties.router)
    app.include_router(pricing.router)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/favicon.ico")
    async def favicon():
        """Return empty favicon response to avoid 404 noise."""
        return Response(status_code=204)

    return app


app = create_app()


if __name__ == "__main__":
    # Run with uvicorn
    uvicorn.run(
        "quote_engine.main:app",
        host=default_settings.app_host,
        port=default_settings.app_port,
        reload=default_settings.debug,
        log_level=default_settings.log_level.lower(),
    )
