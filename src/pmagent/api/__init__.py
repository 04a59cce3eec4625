"""REST API for pmagent."""

from pmagent.api.app import app, create_app
from pmagent.api.models import (
    AgentRespondRequest,
    AgentTurnResponse,
    APIResponse,
    TicketResponse,
)

__all__ = [
    "APIResponse",
    "AgentRespondRequest",
    "AgentTurnResponse",
    "TicketResponse",
    "app",
    "create_app",
]
