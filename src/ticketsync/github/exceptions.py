"""Custom exceptions for the GitHub gateway."""

from __future__ import annotations

from typing import Any


class GitHubError(Exception):
    """Base exception for GitHub gateway errors."""


class TransportError(GitHubError):
    """Request to GitHub failed (HTTP error, GraphQL error, bad response).

    Attributes:
        errors: Raw GraphQL error entries, when the failure came from them.
    """

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    def has_error_type(self, error_type: str) -> bool:
        """Whether any GraphQL error entry has the given ``type``."""
        return any(err.get("type") == error_type for err in self.errors)


class ConnectionLostError(TransportError):
    """GitHub is unreachable; no further request can succeed in this run."""


class AuthenticationError(ConnectionLostError):
    """GitHub rejected the token."""


class RateLimitError(TransportError):
    """GitHub API rate limit exceeded."""


class IssueNotFoundError(GitHubError):
    """Issue with given number does not exist."""


class ProjectNotFoundError(GitHubError):
    """GitHub Project not found."""


class LabelNotFoundError(GitHubError):
    """Label does not exist and creating labels is disabled."""


class TokenNotFoundError(GitHubError):
    """No GitHub token could be resolved."""
