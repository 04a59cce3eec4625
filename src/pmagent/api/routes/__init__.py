"""API route modules."""

from pmagent.api.routes import agent, tickets

__all__ = ["agent", "tickets"]
