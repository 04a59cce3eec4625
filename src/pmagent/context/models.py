"""Data models for the per-turn context pack."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_RULES_DIR = ".cursor/rules"


@dataclass
class ConversationTurn:
    """One prior message in the conversation."""

    role: str
    content: str

    def render(self) -> str:
        """Markdown rendering used inside the context pack."""
        return f"**{self.role}**: {self.content}"


@dataclass
class ContextPackConfig:
    """Inputs for building one turn's context pack.

    Attributes:
        repo_root: Repository checkout the rules, docs and git status come from.
        rules_dir: Rules directory relative to repo_root.
        conversation_history: Prior turns, oldest first.
        conversation_summary: Pre-built conversation block; used verbatim
            instead of conversation_history when set.
    """

    repo_root: str
    rules_dir: str = DEFAULT_RULES_DIR
    conversation_history: list[ConversationTurn] = field(default_factory=list)
    conversation_summary: str | None = None
