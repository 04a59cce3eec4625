"""Text helpers shared by the local and remote repository tools."""

from __future__ import annotations

import re
from collections.abc import Iterator

from pmagent.repo_tools.models import SearchMatch

MAX_FILE_LINES = 500
MAX_SEARCH_MATCHES = 100
MAX_MATCH_TEXT = 200
DEFAULT_GLOB = "**/*"

# Dependency and version-control directories never searched
SKIP_DIRS = frozenset({"node_modules", ".git", ".venv", "__pycache__"})


def compile_glob(glob: str | None) -> re.Pattern[str]:
    """Translate a simple glob into an anchored regex.

    ``*`` matches any run of non-separator characters and ``**`` matches any
    run including separators. Other regex metacharacters are literal.
    """
    pattern = glob or DEFAULT_GLOB
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("^" + "".join(parts) + "$")


def glob_matches(relative_path: str, glob: re.Pattern[str]) -> bool:
    """Check a repo-relative path (any separator style) against a compiled glob."""
    return glob.match(relative_path.replace("\\", "/")) is not None


def truncate_lines(text: str, max_lines: int | None = None) -> str:
    """Cap text at ``max_lines`` (never more than MAX_FILE_LINES) lines.

    When lines are dropped, a trailing marker states how many.
    """
    limit = min(max_lines or MAX_FILE_LINES, MAX_FILE_LINES)
    limit = max(limit, 1)
    lines = text.split("\n")
    if len(lines) <= limit:
        return text
    omitted = len(lines) - limit
    return "\n".join(lines[:limit]) + f"\n\n... (truncated, {omitted} more lines)"


def iter_line_matches(path: str, text: str, regex: re.Pattern[str]) -> Iterator[SearchMatch]:
    """Yield a SearchMatch for every line of ``text`` matching ``regex``."""
    for number, line in enumerate(text.split("\n"), start=1):
        if regex.search(line):
            yield SearchMatch(path=path, line=number, text=line.strip()[:MAX_MATCH_TEXT])


def compile_pattern(pattern: str) -> re.Pattern[str] | None:
    """Compile a user-supplied regex, returning None if it is invalid."""
    try:
        return re.compile(pattern)
    except (re.error, TypeError):
        return None
