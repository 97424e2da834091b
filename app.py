"""
app.py: FastAPI application factory and game lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the engine, the game timers and the connector auth service,
and registers the agent router.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from travel_agent.controllers.agent_controller import router as agent_router
from travel_agent.services.auth_service import AuthService
from travel_agent.services.engine_service import AgentEngine
from travel_agent.services.timer_service import GameTimers
from travel_agent.utils.config import get_settings
from travel_agent.utils.logger import get_logger


logger = get_logger(__name__)


def create_app() -> FastAPI:
    """
    Build and wire the FastAPI application.

    The engine and timers live on app.state; controllers resolve them
    through the dependency providers.
    """
    settings = get_settings()

    engine = AgentEngine(settings=settings)
    timers = GameTimers(engine, settings=settings)
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Stop the timer threads when the server shuts down."""
        logger.info("Startup complete | auth_enabled=%s", auth_service.auth_enabled)
        yield
        timers.stop()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(agent_router)

    app.state.engine = engine
    app.state.timers = timers
    app.state.auth_service = auth_service

    return app


# Module-level app object for uvicorn
app = create_app()
