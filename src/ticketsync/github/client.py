"""GraphQLClient - Thin GitHub GraphQL transport over httpx."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ticketsync.github.exceptions import (
    AuthenticationError,
    ConnectionLostError,
    RateLimitError,
    TransportError,
)
from ticketsync.logging import sanitize_for_log

logger = logging.getLogger("ticketsync.github.client")

GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"
USER_AGENT = "ticketsync"


class GraphQLClient:
    """Executes GraphQL documents against the GitHub API.

    Maps HTTP and GraphQL failures onto the gateway exception hierarchy.
    No retries are attempted.
    """

    def __init__(
        self,
        token: str,
        base_url: str = GITHUB_GRAPHQL_URL,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            token: GitHub token with repo (and project) scope
            base_url: GraphQL endpoint URL (for testing/enterprise)
            timeout: Request timeout in seconds
        """
        self.token = token
        self.base_url = base_url
        self.timeout = timeout
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Get or create HTTP client for GraphQL API."""
        if self._client is None:
            self._client = httpx.Client(
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json",
                    "User-Agent": USER_AGENT,
                },
                timeout=self.timeout,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Execute a GraphQL query or mutation.

        Args:
            query: GraphQL document
            variables: Document variables

        Returns:
            The ``data`` member of the response

        Raises:
            AuthenticationError: If the token is rejected
            RateLimitError: If the rate limit is exhausted
            ConnectionLostError: If GitHub cannot be reached
            TransportError: For any other failure
        """
        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            response = self.client.post(self.base_url, json=payload)
        except httpx.TransportError as e:
            logger.error("GitHub unreachable: %s", e)
            raise ConnectionLostError(f"Failed to reach GitHub API: {e}") from e

        if response.status_code == 401:
            raise AuthenticationError("GitHub API authentication failed. Check your token.")

        if response.status_code == 403:
            text = sanitize_for_log(response.text)
            if "rate limit" in text.lower():
                raise RateLimitError("GitHub API rate limit exceeded. Please wait and try again.")
            raise TransportError(f"GitHub API forbidden: {text}")

        if response.status_code != 200:
            text = sanitize_for_log(response.text)
            logger.error("GraphQL request failed: %s - %s", response.status_code, text)
            raise TransportError(f"GitHub API error ({response.status_code}): {text}")

        try:
            data: dict[str, Any] = response.json()
        except ValueError as e:
            raise TransportError(f"Failed to parse GitHub API response: {e}") from e

        if data.get("errors"):
            messages = [format_graphql_error(err) for err in data["errors"]]
            logger.debug("GraphQL errors: %s", messages)
            raise TransportError(
                "GitHub GraphQL errors:\n  " + "\n  ".join(messages),
                errors=list(data["errors"]),
            )

        if data.get("data") is None:
            raise TransportError("No data in GitHub API response")

        return dict(data["data"])


def format_graphql_error(error: dict[str, Any]) -> str:
    """Render one GraphQL error entry as a single line."""
    message = str(error.get("message", "unknown error"))
    path = error.get("path")
    if path:
        message += f" (path: {'.'.join(str(p) for p in path)})"
    return message
