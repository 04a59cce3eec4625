"""Custom exceptions for repository inspection tools."""


class RepoToolError(Exception):
    """Base exception for repository tool errors."""


class RemoteRepoError(RepoToolError):
    """Request to the remote code host failed."""
