"""Context Pack - per-turn prompt material for the agent."""

from pmagent.context.builder import (
    CONVERSATION_CHAR_BUDGET,
    OLDER_OMITTED_NOTE,
    STATUS_UNAVAILABLE,
    build_context_pack,
    render_conversation,
)
from pmagent.context.exceptions import ContextPackError
from pmagent.context.models import ContextPackConfig, ConversationTurn

__all__ = [
    "CONVERSATION_CHAR_BUDGET",
    "OLDER_OMITTED_NOTE",
    "STATUS_UNAVAILABLE",
    "ContextPackConfig",
    "ContextPackError",
    "ConversationTurn",
    "build_context_pack",
    "render_conversation",
]
