"""GitHub gateway - Remote issue, label, project and sub-issue operations."""

from ticketsync.github.adapter import GitHubGateway, find_matching_project, generate_label_color
from ticketsync.github.auth import get_github_token
from ticketsync.github.client import GITHUB_GRAPHQL_URL, GraphQLClient
from ticketsync.github.exceptions import (
    AuthenticationError,
    ConnectionLostError,
    GitHubError,
    IssueNotFoundError,
    LabelNotFoundError,
    ProjectNotFoundError,
    RateLimitError,
    TokenNotFoundError,
    TransportError,
)
from ticketsync.github.gateway import RemoteGateway
from ticketsync.github.models import (
    IssueState,
    ProjectFieldSchema,
    ProjectHandle,
    ProjectItem,
    RemoteIssue,
)

__all__ = [
    "GITHUB_GRAPHQL_URL",
    "AuthenticationError",
    "ConnectionLostError",
    "GitHubError",
    "GitHubGateway",
    "GraphQLClient",
    "IssueNotFoundError",
    "IssueState",
    "LabelNotFoundError",
    "ProjectFieldSchema",
    "ProjectHandle",
    "ProjectItem",
    "ProjectNotFoundError",
    "RateLimitError",
    "RemoteGateway",
    "RemoteIssue",
    "TokenNotFoundError",
    "TransportError",
    "find_matching_project",
    "generate_label_color",
    "get_github_token",
]
