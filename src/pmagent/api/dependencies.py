"""FastAPI dependencies for dependency injection."""

from __future__ import annotations

from collections.abc import Generator  # noqa: TC003
from typing import Annotated

from fastapi import Depends, HTTPException, status

from pmagent.agent import AgentRunner, get_shared_runner
from pmagent.config import AgentSettings
from pmagent.state_store import TicketStore

# Global settings (initialized on app startup)
_settings: AgentSettings | None = None


def init_settings(settings: AgentSettings) -> AgentSettings:
    """Initialize the global settings."""
    global _settings  # noqa: PLW0603
    _settings = settings
    return _settings


def close_settings() -> None:
    """Clear the global settings."""
    global _settings  # noqa: PLW0603
    _settings = None


def get_settings() -> AgentSettings:
    """Dependency that provides the settings."""
    if _settings is None:
        raise RuntimeError("Settings not initialized. Call init_settings() first.")
    return _settings


# Type alias for dependency injection
SettingsDep = Annotated[AgentSettings, Depends(get_settings)]

# Global TicketStore instance (initialized on app startup when configured)
_ticket_store: TicketStore | None = None


def init_ticket_store(db_path: str = "pmagent.db") -> TicketStore:
    """Initialize the global TicketStore instance."""
    global _ticket_store  # noqa: PLW0603
    _ticket_store = TicketStore(db_path)
    return _ticket_store


def close_ticket_store() -> None:
    """Close the global TicketStore instance."""
    global _ticket_store  # noqa: PLW0603
    if _ticket_store is not None:
        _ticket_store.close()
        _ticket_store = None


def get_optional_ticket_store() -> Generator[TicketStore | None, None, None]:
    """Dependency that provides the TicketStore, or None when not configured."""
    yield _ticket_store


def get_ticket_store(
    store: Annotated[TicketStore | None, Depends(get_optional_ticket_store)],
) -> TicketStore:
    """Dependency that requires a configured TicketStore."""
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ticket store is not configured",
        )
    return store


# Type aliases for dependency injection
OptionalTicketStoreDep = Annotated[TicketStore | None, Depends(get_optional_ticket_store)]
TicketStoreDep = Annotated[TicketStore, Depends(get_ticket_store)]


def get_runner() -> AgentRunner:
    """Dependency that provides the shared agent runner."""
    return get_shared_runner()


# Type alias for dependency injection
RunnerDep = Annotated[AgentRunner, Depends(get_runner)]
