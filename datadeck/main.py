"""
DataDeck - Main Application Entry Point

Generates data-driven HTML presentations with an LLM agent that queries an
analytics database and a CRM, and lets users tweak them afterwards.
"""
from dotenv import load_dotenv

# Environment must be loaded before settings and debug flags are read
load_dotenv()

import logging
from contextlib import asynccontextmanager
from typing import Optional

import aiohttp
import asyncpg
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from datadeck.api.routes import generate, models, sessions, tweak
from datadeck.core import (
    Settings,
    get_debug_status,
    get_settings,
    init_debug_mode,
    is_debug_mode,
    is_tracing_enabled,
    setup_logging,
    setup_tracing,
)
from datadeck.services.presentation.generator import PresentationGenerator
from datadeck.services.presentation.store import SessionStore
from datadeck.services.presentation.tweaker import PresentationTweaker
from datadeck.services.tools import create_tool_registry

init_debug_mode()
setup_logging()
logger = logging.getLogger(__name__)


async def create_analytics_pool(settings: Settings) -> Optional[asyncpg.Pool]:
    """Create the shared analytics connection pool, if a database is configured."""
    if not settings.has_analytics_database:
        logger.warning("⚠️  ANALYTICS_DATABASE_URL not set - query_analytics will report errors")
        return None
    pool = await asyncpg.create_pool(
        dsn=settings.analytics_database_url,
        min_size=settings.analytics_pool_min_size,
        max_size=settings.analytics_pool_max_size,
        ssl="require" if settings.analytics_ssl else None,
    )
    logger.info("✅ Analytics database pool ready")
    return pool


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown."""
    settings = get_settings()

    # Startup
    logger.info(f"🚀 Starting {settings.app_name}...")
    settings.ensure_directories()

    if is_debug_mode():
        logger.info("🐛 Debug mode is \033[92mACTIVE\033[0m")

    if setup_tracing():
        logger.info("📡 OpenTelemetry tracing is active")

    logger.info(f"🤖 Default provider: \033[96m{settings.default_provider}\033[0m")
    logger.info(f"📁 Data directory: \033[93m{settings.data_dir}\033[0m")

    pool = await create_analytics_pool(settings)
    http_session = aiohttp.ClientSession()
    if not settings.crm_access_token:
        logger.warning("⚠️  CRM_ACCESS_TOKEN not set - CRM tools will report errors")

    registry = create_tool_registry(settings, pool=pool, http_session=http_session)
    store = SessionStore(settings.workspaces_dir, retention_hours=settings.session_retention_hours)
    store.purge_expired()

    app.state.registry = registry
    app.state.store = store
    app.state.generator = PresentationGenerator(settings, registry, store)
    app.state.tweaker = PresentationTweaker(settings, registry, store)

    try:
        yield
    finally:
        # Shutdown
        logger.info(f"👋 Shutting down {settings.app_name}...")
        await http_session.close()
        if pool is not None:
            await pool.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    settings.ensure_directories()

    app = FastAPI(
        title=settings.app_name,
        description="Data-driven presentation generator with an LLM agent",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Include API routers
    app.include_router(generate.router)
    app.include_router(tweak.router)
    app.include_router(sessions.router)
    app.include_router(models.router)

    # Serve tool-call audit logs
    app.mount("/logs", StaticFiles(directory=settings.logs_dir), name="logs")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        debug_status = get_debug_status()
        return {
            "status": "healthy",
            "app_name": settings.app_name,
            "default_provider": settings.default_provider,
            "analytics_configured": settings.has_analytics_database,
            "crm_configured": bool(settings.crm_access_token),
            "tracing_enabled": is_tracing_enabled(),
            "debug_mode": debug_status["debug_mode"],
            "trace_count": debug_status["trace_count"],
        }

    @app.get("/api/config")
    async def get_public_config():
        """Get public configuration."""
        debug_status = get_debug_status()
        return {
            "app_name": settings.app_name,
            "llm_enabled": settings.default_provider != "none",
            "default_provider": settings.default_provider,
            "generate_max_turns": settings.generate_max_turns,
            "debug_mode": debug_status["debug_mode"],
            "trace_count": debug_status["trace_count"],
        }

    # Only register debug endpoint if debug mode is enabled
    if is_debug_mode():
        @app.get("/api/debug")
        async def get_debug_info():
            """Get debug mode status and trace count."""
            return get_debug_status()

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "datadeck.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
