"""Data models for repository inspection tools."""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class RepoUsage:
    """One repository access made while executing a tool.

    Attributes:
        tool: Name of the tool that touched the repository.
        source: "local" for the co-located checkout, "github" for a connected project.
        path: Path or pattern that was accessed.
    """

    tool: str
    source: str
    path: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass(frozen=True)
class SearchMatch:
    """A single line matched by search_files."""

    path: str
    line: int
    text: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)
