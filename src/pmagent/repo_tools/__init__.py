"""Repository Tools - Sandboxed read-only inspection of a codebase."""

from typing import Any, Protocol

from pmagent.repo_tools.exceptions import RemoteRepoError, RepoToolError
from pmagent.repo_tools.github import GitHubRepoTools
from pmagent.repo_tools.local import LocalRepoTools
from pmagent.repo_tools.models import RepoUsage, SearchMatch
from pmagent.repo_tools.sandbox import normalize_remote_path, sandbox_path


class RepoTools(Protocol):
    """Interface shared by the local and connected-project tool sets."""

    source: str

    def list_directory(self, path: str) -> dict[str, Any]: ...

    def read_file(self, path: str, max_lines: int | None = None) -> dict[str, Any]: ...

    def search_files(self, pattern: str, glob: str | None = None) -> dict[str, Any]: ...


__all__ = [
    "GitHubRepoTools",
    "LocalRepoTools",
    "RemoteRepoError",
    "RepoTools",
    "RepoToolError",
    "RepoUsage",
    "SearchMatch",
    "normalize_remote_path",
    "sandbox_path",
]
