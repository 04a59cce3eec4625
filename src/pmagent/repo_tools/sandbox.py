"""Path sandboxing for repository file access."""

from __future__ import annotations

import os
import posixpath


def sandbox_path(root: str | os.PathLike[str], candidate: str | None) -> str | None:
    """Resolve a path against ``root`` and make sure it stays inside it.

    Prevents traversal such as ``../../../etc/passwd``. No filesystem access
    is performed; symlinks are not followed.

    Args:
        root: Sandbox root directory.
        candidate: Relative or absolute path. Empty or None means the root itself.

    Returns:
        The absolute path if it is inside the root, otherwise None.
    """
    root_resolved = os.path.abspath(root)
    absolute = os.path.abspath(os.path.join(root_resolved, candidate or "."))
    try:
        relative = os.path.relpath(absolute, root_resolved)
    except ValueError:
        # Different drives on Windows
        return None
    if relative == ".." or relative.startswith(".." + os.sep) or os.path.isabs(relative):
        return None
    return absolute


def normalize_remote_path(candidate: str | None) -> str | None:
    """Normalize a repository-relative path for a remote code host.

    Leading slashes are treated as the repository root.

    Returns:
        The posix path relative to the repository root ("" for the root),
        or None if the path climbs out of the repository.
    """
    cleaned = (candidate or "").replace("\\", "/").lstrip("/")
    normalized = posixpath.normpath(cleaned) if cleaned else "."
    if normalized == ".." or normalized.startswith("../"):
        return None
    return "" if normalized == "." else normalized
