"""Repository tools backed by the GitHub REST API.

Used instead of the local tree when the project is "connected" rather than
co-located. Reads always target the repository's default branch.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import Any

import httpx

from pmagent.repo_tools.exceptions import RemoteRepoError
from pmagent.repo_tools.local import SANDBOX_ERROR
from pmagent.repo_tools.matching import (
    MAX_SEARCH_MATCHES,
    SKIP_DIRS,
    compile_glob,
    compile_pattern,
    glob_matches,
    iter_line_matches,
    truncate_lines,
)
from pmagent.repo_tools.sandbox import normalize_remote_path

logger = logging.getLogger("pmagent.repo_tools.github")

# Files fetched per search; code search only narrows candidates
MAX_SEARCH_FILES = 20

_LITERAL_RUN = re.compile(r"[A-Za-z0-9_]{2,}")


def _field(item: Any, key: str) -> str:
    """String field of a listing item, or RemoteRepoError for malformed items."""
    if not isinstance(item, dict) or not isinstance(item.get(key), str):
        raise RemoteRepoError(f"Unexpected GitHub response: item without '{key}'")
    return item[key]


class GitHubRepoTools:
    """list/read/search against a GitHub repository's default branch."""

    source = "github"

    def __init__(
        self,
        repo: str,
        token: str,
        base_url: str = "https://api.github.com",
    ) -> None:
        """Initialize GitHub repository tools.

        Args:
            repo: GitHub repo in "owner/repo" format
            token: GitHub token with read access to contents
            base_url: GitHub API base URL (for testing/enterprise)
        """
        self.repo = repo
        self.token = token
        self.base_url = base_url.rstrip("/")
        self._client: httpx.Client | None = None
        self._default_branch: str | None = None

    @property
    def client(self) -> httpx.Client:
        """Get or create HTTP client for GitHub API."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
                timeout=30.0,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a GitHub API path and decode JSON.

        Raises:
            RemoteRepoError: On transport failures, non-200 responses or non-JSON bodies
        """
        try:
            response = self.client.get(path, params=params)
        except httpx.HTTPError as e:
            raise RemoteRepoError(f"GitHub request failed: {e}") from e
        if response.status_code == 404:
            raise RemoteRepoError("No such file or directory")
        if response.status_code != 200:
            raise RemoteRepoError(
                f"GitHub request failed: {response.status_code} - {response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise RemoteRepoError(
                f"GitHub returned a non-JSON response: {response.text[:200]}"
            ) from e

    def _get_object(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        data = self._get_json(path, params)
        if not isinstance(data, dict):
            raise RemoteRepoError(f"Unexpected GitHub response for {path}")
        return data

    @property
    def default_branch(self) -> str:
        """Default branch of the repository (fetched once)."""
        if self._default_branch is None:
            data = self._get_object(f"/repos/{self.repo}")
            self._default_branch = str(data.get("default_branch") or "main")
        return self._default_branch

    def _contents(self, path: str) -> Any:
        return self._get_json(
            f"/repos/{self.repo}/contents/{path}",
            params={"ref": self.default_branch},
        )

    def _file_text(self, path: str) -> str:
        data = self._contents(path)
        if isinstance(data, list):
            raise RemoteRepoError("Is a directory")
        if not isinstance(data, dict):
            raise RemoteRepoError(f"Unexpected GitHub response for {path}")
        if data.get("type") != "file":
            raise RemoteRepoError(f"Not a regular file: {data.get('type')}")
        try:
            raw = base64.b64decode(data.get("content") or "")
            return raw.decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise RemoteRepoError("File is not valid UTF-8 text") from e

    def list_directory(self, path: str) -> dict[str, Any]:
        """List immediate children of a directory, sorted by name."""
        remote_path = normalize_remote_path(path)
        if remote_path is None:
            return {"error": SANDBOX_ERROR}
        try:
            data = self._contents(remote_path)
        except RemoteRepoError as e:
            return {"error": str(e)}
        if not isinstance(data, list):
            return {"error": "Not a directory"}
        try:
            return {"entries": sorted(_field(item, "name") for item in data)}
        except RemoteRepoError as e:
            return {"error": str(e)}

    def read_file(self, path: str, max_lines: int | None = None) -> dict[str, Any]:
        """Read a text file, truncated to at most 500 lines."""
        remote_path = normalize_remote_path(path)
        if not remote_path:
            return {"error": SANDBOX_ERROR if remote_path is None else "Is a directory"}
        try:
            text = self._file_text(remote_path)
        except RemoteRepoError as e:
            return {"error": str(e)}
        return {"content": truncate_lines(text, max_lines)}

    def search_files(self, pattern: str, glob: str | None = None) -> dict[str, Any]:
        """Regex search using code search to pick candidate files.

        GitHub code search is literal, so the longest literal run of the
        pattern selects candidates; the regex and glob are then applied to
        each candidate file's text.
        """
        regex = compile_pattern(pattern)
        if regex is None:
            return {"error": f"Invalid regex pattern: {pattern}"}
        literals = _LITERAL_RUN.findall(pattern)
        if not literals:
            return {"error": "Pattern has no literal text usable for remote code search"}
        query = f"{max(literals, key=len)} repo:{self.repo}"
        glob_regex = compile_glob(glob)

        try:
            data = self._get_object("/search/code", params={"q": query, "per_page": 100})
            items = data.get("items", [])
            if not isinstance(items, list):
                raise RemoteRepoError("Unexpected GitHub code search response")
            candidates = {_field(item, "path") for item in items}
        except RemoteRepoError as e:
            return {"error": str(e)}

        paths = sorted(
            path
            for path in candidates
            if glob_matches(path, glob_regex) and not SKIP_DIRS.intersection(path.split("/"))
        )[:MAX_SEARCH_FILES]

        matches: list[dict[str, Any]] = []
        for path in paths:
            try:
                text = self._file_text(path)
            except RemoteRepoError:
                logger.debug("Skipping unreadable remote file %s", path)
                continue
            for match in iter_line_matches(path, text, regex):
                matches.append(match.to_dict())
                if len(matches) >= MAX_SEARCH_MATCHES:
                    return {"matches": matches}
        return {"matches": matches}
