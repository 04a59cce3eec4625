"""Read-only tools over the co-located repository checkout.

All paths are sandboxed to the repository root. Failures are returned as
``{"error": ...}`` values for the model, never raised.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from pmagent.repo_tools.matching import (
    MAX_SEARCH_MATCHES,
    SKIP_DIRS,
    compile_glob,
    compile_pattern,
    glob_matches,
    iter_line_matches,
    truncate_lines,
)
from pmagent.repo_tools.sandbox import sandbox_path

logger = logging.getLogger("pmagent.repo_tools.local")

SANDBOX_ERROR = "Path escapes repo sandbox"


class LocalRepoTools:
    """list/read/search over a local directory tree."""

    source = "local"

    def __init__(self, repo_root: str | Path) -> None:
        """Initialize local repository tools.

        Args:
            repo_root: Directory the model is allowed to inspect.
        """
        self.repo_root = os.path.abspath(repo_root)

    def list_directory(self, path: str) -> dict[str, Any]:
        """List immediate children of a directory, sorted by name."""
        safe_path = sandbox_path(self.repo_root, path)
        if safe_path is None:
            return {"error": SANDBOX_ERROR}
        try:
            return {"entries": sorted(os.listdir(safe_path))}
        except OSError as e:
            return {"error": _describe(e)}

    def read_file(self, path: str, max_lines: int | None = None) -> dict[str, Any]:
        """Read a text file, truncated to at most 500 lines."""
        safe_path = sandbox_path(self.repo_root, path)
        if safe_path is None:
            return {"error": SANDBOX_ERROR}
        try:
            raw = Path(safe_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return {"error": _describe(e)}
        return {"content": truncate_lines(raw, max_lines)}

    def search_files(self, pattern: str, glob: str | None = None) -> dict[str, Any]:
        """Regex search over files matching ``glob``.

        Dependency and VCS directories are skipped. Returns at most 100
        matches with 1-based line numbers.
        """
        regex = compile_pattern(pattern)
        if regex is None:
            return {"error": f"Invalid regex pattern: {pattern}"}
        glob_regex = compile_glob(glob)

        root_real = os.path.realpath(self.repo_root)
        matches: list[dict[str, Any]] = []
        for dirpath, dirnames, filenames in os.walk(self.repo_root):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
            for name in sorted(filenames):
                full = os.path.join(dirpath, name)
                rel = os.path.relpath(full, self.repo_root).replace(os.sep, "/")
                if not glob_matches(rel, glob_regex):
                    continue
                # Symlinks pointing outside the checkout are ignored
                if sandbox_path(root_real, os.path.realpath(full)) is None:
                    continue
                try:
                    text = Path(full).read_text(encoding="utf-8")
                except (OSError, UnicodeDecodeError):
                    continue
                for match in iter_line_matches(rel, text, regex):
                    matches.append(match.to_dict())
                    if len(matches) >= MAX_SEARCH_MATCHES:
                        logger.debug("search_files hit match cap for %r", pattern)
                        return {"matches": matches}
        return {"matches": matches}


def _describe(error: Exception) -> str:
    """Human-readable error text without leaking the absolute sandbox root."""
    if isinstance(error, FileNotFoundError):
        return "No such file or directory"
    if isinstance(error, NotADirectoryError):
        return "Not a directory"
    if isinstance(error, IsADirectoryError):
        return "Is a directory"
    if isinstance(error, UnicodeDecodeError):
        return "File is not valid UTF-8 text"
    return str(error)
