"""FastAPI application setup."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pmagent.api.dependencies import (
    close_settings,
    close_ticket_store,
    init_settings,
    init_ticket_store,
)
from pmagent.api.models import APIResponse
from pmagent.api.routes import agent, tickets
from pmagent.config import AgentSettings, ConfigError, load_settings
from pmagent.logging import get_logger
from pmagent.state_store import StateStoreError, TicketNotFoundError
from pmagent.tickets import TicketError, TicketValidationError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    settings = app.state.settings if app.state.settings is not None else load_settings()
    init_settings(settings)
    if settings.store_enabled:
        init_ticket_store(settings.db_path)
        logger.info("Ticket store opened at %s", settings.db_path)
    else:
        logger.info("No ticket store configured; ticket tools disabled")

    yield
    # Shutdown
    close_ticket_store()
    close_settings()


def create_app(settings: AgentSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use; loaded from pmagent.yaml and the
            environment at startup when None.
    """
    app = FastAPI(
        title="pmagent API",
        description="REST API for the Project Manager agent",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store config for lifespan manager
    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(TicketNotFoundError)
    async def ticket_not_found_handler(_request: Request, exc: TicketNotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content=APIResponse[None](data=None, error=str(exc)).model_dump(),
        )

    @app.exception_handler(TicketValidationError)
    async def ticket_validation_handler(
        _request: Request, exc: TicketValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=APIResponse[None](data=None, error=str(exc)).model_dump(),
        )

    @app.exception_handler(TicketError)
    async def ticket_error_handler(_request: Request, exc: TicketError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=APIResponse[None](data=None, error=str(exc)).model_dump(),
        )

    @app.exception_handler(ConfigError)
    async def config_error_handler(_request: Request, exc: ConfigError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=APIResponse[None](data=None, error=str(exc)).model_dump(),
        )

    @app.exception_handler(StateStoreError)
    async def state_store_error_handler(_request: Request, exc: StateStoreError) -> JSONResponse:
        logger.error("Ticket store error: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=APIResponse[None](data=None, error="Internal server error").model_dump(),
        )

    # Include routers
    app.include_router(agent.router, prefix="/api/v1")
    app.include_router(tickets.router, prefix="/api/v1")

    return app


# Default app instance
app = create_app()
